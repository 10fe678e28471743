"""
Configuration Module - Configuration management and loading.

This module handles loading, saving, and validating harvester configurations,
and reading rules files.

Components:
-----------
- ConfigLoader: Loads and saves configurations from/to YAML files
- validate_config: Validates configuration objects
- load_rules_file: Reads raw rules from a YAML or JSON file
- ConfigurationError: Exception raised for invalid configurations

Usage:
------
from web_harvester.config import ConfigLoader, validate_config

config = ConfigLoader.load_from_yaml('harvester.yaml')
validate_config(config)

config = ConfigLoader.create_default_config()
config.extraction.max_follow_depth = 1
ConfigLoader.save_to_yaml(config, 'harvester.yaml')

Configuration File Format:
-------------------------
fetch:
  user_agent: web-harvester/1.0
  timeout_seconds: 30
  max_retries: 3

extraction:
  html_parser: html.parser
  respect_robots_txt: true
  max_follow_depth: 3
  defaults:
    method: GET
    delay_ms: 1000
    redirects: 10
"""

from .harvester_config import (
    ConfigLoader,
    ConfigurationError,
    ExtractionConfig,
    HarvesterConfig,
    RuleDefaults,
    load_rules_file,
    validate_config,
)

__all__ = [
    'ConfigLoader',
    'validate_config',
    'load_rules_file',
    'ConfigurationError',
    'HarvesterConfig',
    'ExtractionConfig',
    'RuleDefaults',
]
