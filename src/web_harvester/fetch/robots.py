"""
Robots.txt gate - respects website crawling rules.

The robots.txt of each host is fetched once, through the harvester itself, and
cached for the lifetime of the RobotsTxt object.
"""

import logging
from typing import TYPE_CHECKING, Dict
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

from ..core.errors import RobotsRestrictionError, RobotsStatusError
from ..core.rules import DEFAULT_USER_AGENT, release_rules, release_selectors
from ..utils.locks import ReadWriteLock

if TYPE_CHECKING:
    from ..core.harvester import Harvester
    from ..core.rules import Rules

ROBOTS_TXT_PATH = "/robots.txt"


def parser_from_response(status_code: int, body: bytes, url: str = "") -> RobotFileParser:
    """
    Build a RobotFileParser from a robots.txt response.

    2xx bodies are parsed, 4xx means no restrictions and 5xx disallows
    everything.

    Raises:
        RobotsStatusError: For any other status code
    """
    parser = RobotFileParser()

    if 200 <= status_code < 300:
        text = body.decode('utf-8', errors='replace')
        parser.parse(text.splitlines())
    elif 400 <= status_code < 500:
        parser.allow_all = True
        parser.modified()
    elif 500 <= status_code < 600:
        parser.disallow_all = True
        parser.modified()
    else:
        raise RobotsStatusError(status_code, url)
    return parser


class RobotsTxt:
    """
    Thread-safe cache of robots.txt parsers keyed by host.

    Entries are never refreshed automatically; call clear() to drop them.
    """

    def __init__(self):
        self.cache: Dict[str, RobotFileParser] = {}
        self.lock = ReadWriteLock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_allowed(self, harvester: "Harvester", rules: "Rules"):
        """
        Verify that the rules' User-Agent may fetch the rules' URL.

        Raises:
            RobotsRestrictionError: If robots.txt disallows the URL
            RobotsStatusError: If robots.txt answers with a 1xx or 3xx status
            Exception: Any failure fetching robots.txt is propagated
        """
        parsed = urlparse(rules.url)
        if parsed.path == ROBOTS_TXT_PATH:
            return

        host = rules.host.lower()

        with self.lock.read():
            parser = self.cache.get(host)

        if parser is None:
            parser = self._fetch(harvester, rules)
            with self.lock.write():
                self.cache[host] = parser

        user_agent = rules.header.get_first("User-Agent", DEFAULT_USER_AGENT)
        if not parser.can_fetch(user_agent, rules.url):
            self.logger.info(f"URL disallowed by robots.txt: {rules.url}")
            raise RobotsRestrictionError(rules.url)

    def _fetch(self, harvester: "Harvester", rules: "Rules") -> RobotFileParser:
        robots_rules = rules.clone()
        robots_rules.method = "GET"
        robots_rules.url = urljoin(rules.url, ROBOTS_TXT_PATH)
        robots_rules.ignore_robots_txt = True
        robots_rules.selectors = release_selectors(robots_rules.selectors)

        self.logger.info(f"Fetching robots.txt from {robots_rules.url}")
        try:
            response = harvester.do(robots_rules)
        finally:
            release_rules(robots_rules)

        parser = parser_from_response(response.status_code, response.body, response.url)
        self.logger.debug(f"Cached robots.txt for {rules.host} "
                          f"(status {response.status_code})")
        return parser

    def clear(self):
        """Remove every cached robots.txt."""
        with self.lock.write():
            self.cache.clear()

    def get_stats(self) -> dict:
        with self.lock.read():
            return {
                'cached_hosts': len(self.cache),
                'hosts': list(self.cache.keys()),
            }
