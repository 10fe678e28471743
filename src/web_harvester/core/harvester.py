"""
Harvester - fetches content and extracts data based on rules.

The harvester wires four collaborators together:

    transport  makes the HTTP request (see fetch.transport.HTTPTransport)
    delay      spaces requests to the same host (see fetch.delay.RequestDelay)
    robots     enforces robots.txt (see fetch.robots.RobotsTxt)
    parser     builds the root node of a response (see parsers.ParserRegistry)

Usage:

    harvester = Harvester.from_config(ConfigLoader.create_default_config())
    rules = harvester.load_rules({"URL": "https://example.com",
                                  "Selectors": {"title": "//title"}})
    output = harvester.extract(rules)
    print(output.data["title"])
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

import requests
from lxml import etree

from ..extraction.resolver import find_selectors
from ..fetch.delay import RequestDelay
from ..fetch.response import Response
from ..fetch.robots import RobotsTxt
from ..fetch.transport import HTTPTransport
from ..parsers.registry import ParserRegistry
from .errors import ConfigError, ErrorSet, FollowDepthError, HarvestError
from .rules import DEFAULT_USER_AGENT, Rules

if TYPE_CHECKING:
    from ..config.harvester_config import HarvesterConfig

# Errors raised to callers unchanged; anything else is wrapped in HarvestError
_PASS_THROUGH = (HarvestError, requests.RequestException, re.error, etree.LxmlError)


@dataclass(frozen=True)
class Output:
    """
    Result of an extraction.

    ``data`` is None when the rules have no selectors. ``errors`` names every
    selector (or followed link) that failed; the data that could be extracted
    is still present.
    """
    response: Response
    data: Optional[Dict[str, Any]] = None
    errors: Optional[ErrorSet] = None

    def serializable(self) -> Dict[str, Any]:
        return {
            'response': self.response.serializable(),
            'data': self.data,
        }

    def to_json(self, **kwargs) -> str:
        return json.dumps(self.serializable(), **kwargs)

    def raise_for_errors(self):
        """Raise the ErrorSet if any selector failed."""
        if self.errors:
            raise self.errors


class Harvester:
    """
    Makes HTTP requests and extracts the content of the response based on
    rules.

    Only the transport is required for do(); extract() also needs a parser.
    Delay and robots handling are skipped when their collaborator is None.
    """

    def __init__(self, transport: Optional[HTTPTransport] = None,
                 delay: Optional[RequestDelay] = None,
                 robots: Optional[RobotsTxt] = None,
                 parser: Optional[ParserRegistry] = None,
                 max_follow_depth: Optional[int] = None,
                 defaults: Optional[Rules] = None):
        """
        Args:
            transport: HTTP transport
            delay: Per-host delay synchronizer
            robots: robots.txt gate
            parser: Parser registry
            max_follow_depth: Maximum number of followed links from the
                caller's rules, None for unbounded
            defaults: Rules used as defaults by load_rules()
        """
        self.transport = transport
        self.delay = delay
        self.robots = robots
        self.parser = parser
        self.max_follow_depth = max_follow_depth
        self.defaults = defaults
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config: "HarvesterConfig") -> "Harvester":
        """Build a harvester with the standard collaborators."""
        extraction = config.extraction
        return cls(
            transport=HTTPTransport(config.fetch),
            delay=RequestDelay(),
            robots=RobotsTxt() if extraction.respect_robots_txt else None,
            parser=ParserRegistry.default(extraction.html_parser),
            max_follow_depth=extraction.max_follow_depth,
            defaults=config.default_rules(),
        )

    def load_rules(self, raw: Dict[str, Any]) -> Rules:
        """
        Build Rules from a raw mapping on top of the harvester defaults.

        Raises:
            ErrorSet: If rule fields could not be converted
        """
        return Rules.from_dict(raw, defaults=self.defaults)

    def do(self, rules: Rules) -> Response:
        """
        Make the HTTP request described by ``rules``.

        robots.txt is checked first (unless the rules ignore it), then the
        per-host delay is waited when the rules set one.

        Raises:
            ConfigError: Missing transport or rules
            RobotsRestrictionError: robots.txt disallows the URL
            RobotsStatusError: robots.txt answered with a 1xx or 3xx status
            MaxRedirectsError, ResponseBodySizeError: Limits exceeded
            requests.RequestException: Transport failures
        """
        try:
            return self._do(rules)
        except _PASS_THROUGH:
            raise
        except Exception as e:
            raise HarvestError(f"request failed: {e}") from e

    def _do(self, rules: Rules) -> Response:
        if self.transport is None:
            raise ConfigError("transport is None")
        if rules is None:
            raise ConfigError("rules is None")

        if not rules.header.get_first("User-Agent"):
            rules.header.set("User-Agent", DEFAULT_USER_AGENT)

        if self.robots is not None and not rules.ignore_robots_txt:
            self.robots.is_allowed(self, rules)

        wait = self.delay is not None and rules.delay > 0
        if wait:
            self.delay.wait(rules.url, rules.delay)

        try:
            return self.transport.do(self, rules)
        finally:
            # Stamp before signaling so the next waiter sees this request
            if self.delay is not None:
                self.delay.stamp(rules.url)
            if wait:
                self.delay.done(rules.url)

    def extract(self, rules: Rules) -> Output:
        """
        Make the HTTP request and extract data from the response.

        Selector failures do not raise: they are reported in
        ``Output.errors`` next to the partial data.

        Raises:
            ConfigError: Missing parser, transport or rules
            FollowDepthError: The rules are deeper than max_follow_depth
            NotMatchError: No parser for the response Content-Type
            Any error raised by do()
        """
        try:
            return self._extract(rules)
        except _PASS_THROUGH:
            raise
        except Exception as e:
            raise HarvestError(f"extraction failed: {e}") from e

    def _extract(self, rules: Rules) -> Output:
        if self.parser is None:
            raise ConfigError("parser is None")
        if rules is None:
            raise ConfigError("rules is None")

        if self.max_follow_depth is not None and rules.depth > self.max_follow_depth:
            raise FollowDepthError(rules.depth, self.max_follow_depth)

        response = self.do(rules)
        if not rules.selectors:
            return Output(response=response)

        root = self.parser.parse(rules, response)
        data, errors = find_selectors(rules, response, root)
        if errors:
            self.logger.warning(f"Extraction from {rules.url} finished with "
                                f"{len(errors)} failed selector(s)")
        return Output(response=response, data=data, errors=errors)

    def clear(self):
        """Clear every collaborator."""
        if self.transport is not None:
            self.transport.clear()
        if self.delay is not None:
            self.delay.clear()
        if self.robots is not None:
            self.robots.clear()
        if self.parser is not None:
            self.parser.clear()
