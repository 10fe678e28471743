"""
Harvester Configuration Management - Centralized configuration loading and validation.
Supports loading from YAML files with validation and defaults, and reading
rules files (YAML or JSON).
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..core.rules import Header, Rules
from ..fetch.transport import FetchConfig

HTML_PARSERS = ('html.parser', 'lxml', 'html5lib')


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class RuleDefaults:
    """Values applied to rules before their own fields."""
    method: str = "GET"
    timeout_ms: int = 0  # 0 uses the fetch timeout
    delay_ms: int = 0
    redirects: int = 10
    response_body_size: int = 0  # 0 = unlimited
    cookies: bool = False
    ignore_robots_txt: bool = False


@dataclass
class ExtractionConfig:
    """Configuration for parsing and selector resolution."""
    html_parser: str = "html.parser"  # BeautifulSoup tree builder
    respect_robots_txt: bool = True
    max_follow_depth: Optional[int] = 3  # None = unbounded
    defaults: RuleDefaults = field(default_factory=RuleDefaults)


@dataclass
class HarvesterConfig:
    """Master configuration for the harvester."""
    fetch: FetchConfig = field(default_factory=FetchConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)

    def default_rules(self) -> Rules:
        """Rules carrying the configured defaults, used as a base by load_rules."""
        defaults = self.extraction.defaults
        rules = Rules(
            method=defaults.method,
            header=Header(),
            timeout=defaults.timeout_ms / 1000.0,
            cookies=defaults.cookies,
            ignore_robots_txt=defaults.ignore_robots_txt,
            delay=defaults.delay_ms / 1000.0,
            redirects=defaults.redirects,
            response_body_size=defaults.response_body_size,
        )
        if self.fetch.user_agent:
            rules.header.set("User-Agent", self.fetch.user_agent)
        return rules


class ConfigLoader:
    """Loads and validates harvester configuration from YAML files."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def load_from_yaml(config_path: str) -> HarvesterConfig:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            HarvesterConfig object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        logger = logging.getLogger(__name__)

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(path, 'r') as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read {config_path}: {e}")

        if not config_dict:
            raise ConfigurationError(f"Empty configuration file: {config_path}")
        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration must be a mapping: {config_path}")

        logger.info(f"Loaded configuration from {config_path}")

        try:
            return ConfigLoader._parse_config(config_dict)
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Failed to parse configuration: {e}")

    @staticmethod
    def _parse_config(config_dict: Dict[str, Any]) -> HarvesterConfig:
        """Parse configuration dictionary into HarvesterConfig object."""
        fetch_cfg = config_dict.get('fetch') or {}
        extraction_cfg = config_dict.get('extraction') or {}
        defaults_cfg = extraction_cfg.get('defaults') or {}

        fetch = FetchConfig(
            user_agent=fetch_cfg.get('user_agent', 'web-harvester/1.0'),
            timeout_seconds=fetch_cfg.get('timeout_seconds', 30.0),
            verify_ssl=fetch_cfg.get('verify_ssl', True),
            max_retries=fetch_cfg.get('max_retries', 3),
            retry_backoff_factor=fetch_cfg.get('retry_backoff_factor', 0.5),
            retry_on_status=fetch_cfg.get('retry_on_status', [429, 500, 502, 503, 504]),
            pool_connections=fetch_cfg.get('pool_connections', 10),
            pool_maxsize=fetch_cfg.get('pool_maxsize', 20),
        )

        defaults = RuleDefaults(
            method=defaults_cfg.get('method', 'GET'),
            timeout_ms=defaults_cfg.get('timeout_ms', 0),
            delay_ms=defaults_cfg.get('delay_ms', 0),
            redirects=defaults_cfg.get('redirects', 10),
            response_body_size=defaults_cfg.get('response_body_size', 0),
            cookies=defaults_cfg.get('cookies', False),
            ignore_robots_txt=defaults_cfg.get('ignore_robots_txt', False),
        )

        extraction = ExtractionConfig(
            html_parser=extraction_cfg.get('html_parser', 'html.parser'),
            respect_robots_txt=extraction_cfg.get('respect_robots_txt', True),
            max_follow_depth=extraction_cfg.get('max_follow_depth', 3),
            defaults=defaults,
        )

        return HarvesterConfig(fetch=fetch, extraction=extraction)

    @staticmethod
    def save_to_yaml(config: HarvesterConfig, output_path: str):
        """Save configuration to YAML file."""
        logger = logging.getLogger(__name__)

        config_dict = {
            'fetch': asdict(config.fetch),
            'extraction': asdict(config.extraction),
        }
        # Not configurable from YAML
        config_dict['fetch'].pop('chunk_size', None)

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, 'w') as f:
                yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)
            logger.info(f"Configuration saved to {output_path}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")

    @staticmethod
    def create_default_config() -> HarvesterConfig:
        """Create a default configuration."""
        return HarvesterConfig(
            fetch=FetchConfig(),
            extraction=ExtractionConfig(defaults=RuleDefaults()),
        )


def validate_config(config: HarvesterConfig) -> bool:
    """Validate harvester configuration."""
    logger = logging.getLogger(__name__)

    if config.fetch.timeout_seconds <= 0:
        raise ConfigurationError("timeout_seconds must be positive")

    if config.fetch.max_retries < 0:
        raise ConfigurationError("max_retries cannot be negative")

    if config.fetch.pool_connections < 1 or config.fetch.pool_maxsize < 1:
        raise ConfigurationError("pool sizes must be at least 1")

    if config.extraction.html_parser not in HTML_PARSERS:
        raise ConfigurationError(f"html_parser must be one of {', '.join(HTML_PARSERS)}")

    depth = config.extraction.max_follow_depth
    if depth is not None and depth < 0:
        raise ConfigurationError("max_follow_depth cannot be negative")

    defaults = config.extraction.defaults
    for name in ('timeout_ms', 'delay_ms', 'redirects', 'response_body_size'):
        if getattr(defaults, name) < 0:
            raise ConfigurationError(f"defaults.{name} cannot be negative")

    logger.info("Configuration validated successfully")
    return True


def load_rules_file(rules_path: str) -> List[Dict[str, Any]]:
    """
    Read raw rules from a YAML or JSON file.

    The file holds one rules mapping or a list of them.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    logger = logging.getLogger(__name__)

    path = Path(rules_path)
    if not path.exists():
        raise ConfigurationError(f"Rules file not found: {rules_path}")

    try:
        with open(path, 'r') as f:
            if path.suffix.lower() == '.json':
                raw = json.load(f)
            else:
                raw = yaml.safe_load(f)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigurationError(f"Invalid rules file {rules_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to read {rules_path}: {e}")

    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise ConfigurationError(f"Rules file must hold a mapping or a list of mappings: {rules_path}")

    logger.info(f"Loaded {len(raw)} rules from {rules_path}")
    return raw
