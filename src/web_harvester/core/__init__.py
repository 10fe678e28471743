"""
Core Module - rules model, error taxonomy and the Harvester orchestrator.

Usage:
------
from web_harvester.core import Harvester
from web_harvester.config import ConfigLoader

config = ConfigLoader.load_from_yaml('config/default.yaml')
harvester = Harvester.from_config(config)

rules = harvester.load_rules({
    'URL': 'https://example.com',
    'Selectors': {'title': '//title'},
})
output = harvester.extract(rules)
print(output.to_json())
"""

# errors and rules load first; the fetch and parser modules import them
from .errors import (
    ConfigError,
    DuplicateSelectorError,
    ErrorSet,
    ExprTypeError,
    FollowDepthError,
    HarvestError,
    MaxRedirectsError,
    NotMatchError,
    ResponseBodySizeError,
    RobotsRestrictionError,
    RobotsStatusError,
    URLCoercionError,
    add_error,
)
from .rules import Header, Rules, Selector, release_rules
from .harvester import Harvester, Output
from .batch import BatchExtractor, BatchResult

__all__ = [
    'Harvester',
    'Output',
    'BatchExtractor',
    'BatchResult',
    'Rules',
    'Selector',
    'Header',
    'release_rules',
    'HarvestError',
    'ConfigError',
    'NotMatchError',
    'ExprTypeError',
    'RobotsRestrictionError',
    'RobotsStatusError',
    'MaxRedirectsError',
    'ResponseBodySizeError',
    'URLCoercionError',
    'FollowDepthError',
    'DuplicateSelectorError',
    'ErrorSet',
    'add_error',
]
