"""
HTML parsing.

Documents are parsed by BeautifulSoup (tolerant of malformed markup) and
converted into an lxml tree, which gives XPath and CSS selection over the
same nodes.
"""

import logging
from typing import TYPE_CHECKING, Any, List, Optional

from lxml.html import soupparser

from .node import CSS_SELECTOR, XPATH_EXPR, Node, xpath_results

if TYPE_CHECKING:
    from ..fetch.response import Response

HTML_REGEXP = r"^text\/html"

logger = logging.getLogger(__name__)


class HTMLNode(Node):
    """HTML element supporting XPath (default) and CSS expressions."""

    kind = "html"
    expr_types = (XPATH_EXPR, CSS_SELECTOR)

    def __init__(self, element):
        self.element = element

    def find(self, expr: str, expr_type: str = "") -> Optional[Node]:
        nodes = self.find_all(expr, expr_type)
        return nodes[0] if nodes else None

    def find_all(self, expr: str, expr_type: str = "") -> List[Node]:
        expr_type = self.check_expr_type(expr_type)

        if expr_type == CSS_SELECTOR:
            return [HTMLNode(element) for element in self.element.cssselect(expr)]
        return xpath_results(self.element.xpath(expr), HTMLNode, self.expr_types)

    def value(self) -> Any:
        return str(self.element.text_content())

    def __repr__(self) -> str:
        return f"HTMLNode(<{self.element.tag}>)"


def parse_html(response: "Response", features: str = "html.parser") -> HTMLNode:
    """
    Parse an HTML response into its root node.

    Args:
        response: Fetched response
        features: BeautifulSoup tree builder ('html.parser', 'lxml', 'html5lib')
    """
    bs_args = {'features': features}
    if response.charset:
        bs_args['from_encoding'] = response.charset

    root = soupparser.fromstring(response.body, **bs_args)
    logger.debug(f"Parsed HTML from {response.url} ({len(response.body)}b)")
    return HTMLNode(root)
