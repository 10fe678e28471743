"""
Web Harvester - rule-based structured data extraction from the web.

Features:
- Declarative, nestable selector rules (XPath, CSS, regular expressions)
- HTML, XML, JSON and plain text content
- Link following with derived rules
- Per-host request delay and robots.txt enforcement
- Partial results with a structured error report
- Configurable via YAML
"""

__version__ = "1.0.0"

from .core import (
    BatchExtractor,
    ErrorSet,
    HarvestError,
    Harvester,
    Output,
    Rules,
    Selector,
)
from .config.harvester_config import ConfigLoader, HarvesterConfig, validate_config
from .parsers.registry import ParserRegistry

__all__ = [
    'Harvester',
    'Output',
    'BatchExtractor',
    'Rules',
    'Selector',
    'ErrorSet',
    'HarvestError',
    'ParserRegistry',
    'ConfigLoader',
    'HarvesterConfig',
    'validate_config',
]
