"""
Parser registry - maps Content-Type patterns to node constructors.
"""

import functools
import logging
import re
from typing import TYPE_CHECKING, Callable, List, Optional, Pattern, Tuple

from ..core.errors import NotMatchError
from ..utils.locks import ReadWriteLock
from .html import HTML_REGEXP, parse_html
from .json_node import JSON_REGEXP, parse_json
from .node import Node
from .text import TEXT_REGEXP, parse_text
from .xml import XML_REGEXP, parse_xml

if TYPE_CHECKING:
    from ..core.rules import Rules
    from ..fetch.response import Response

NodeConstructor = Callable[["Response"], Node]


class ParserRegistry:
    """
    Ordered list of (Content-Type regex, constructor) entries.

    The first entry whose pattern matches the response Content-Type builds the
    root node. Registering an existing pattern replaces its constructor in
    place.
    """

    def __init__(self):
        self.entries: List[Tuple[Pattern, NodeConstructor]] = []
        self.lock = ReadWriteLock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def default(cls, html_parser: str = "html.parser") -> "ParserRegistry":
        """Registry with the HTML, JSON, text and XML parsers."""
        registry = cls()
        registry.set(HTML_REGEXP, functools.partial(parse_html, features=html_parser))
        registry.set(JSON_REGEXP, parse_json)
        registry.set(TEXT_REGEXP, parse_text)
        registry.set(XML_REGEXP, parse_xml)
        return registry

    def set(self, pattern: str, constructor: NodeConstructor):
        """
        Register ``constructor`` for Content-Types matching ``pattern``.

        Raises:
            re.error: If the pattern does not compile
        """
        compiled = re.compile(pattern)

        with self.lock.write():
            for i, (existing, _) in enumerate(self.entries):
                if existing.pattern == compiled.pattern:
                    self.entries[i] = (compiled, constructor)
                    return
            self.entries.append((compiled, constructor))

    def _find(self, content_type: str) -> Optional[NodeConstructor]:
        with self.lock.read():
            for pattern, constructor in self.entries:
                if pattern.search(content_type):
                    return constructor
        return None

    def match(self, content_type: str) -> bool:
        return self._find(content_type) is not None

    def parse(self, rules: "Rules", response: "Response") -> Node:
        """
        Build the root node of ``response``.

        Raises:
            NotMatchError: No registered pattern matches the Content-Type
        """
        content_type = response.content_type
        constructor = self._find(content_type)
        if constructor is None:
            raise NotMatchError(content_type)

        self.logger.debug(f"Parsing {response.url} as {content_type!r}")
        return constructor(response)

    def clear(self):
        with self.lock.write():
            self.entries.clear()

    def __len__(self) -> int:
        with self.lock.read():
            return len(self.entries)
