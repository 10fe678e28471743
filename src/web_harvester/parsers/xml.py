"""
XML parsing with lxml.
"""

from typing import TYPE_CHECKING, Any, List, Optional

from lxml import etree

from .node import XPATH_EXPR, Node, xpath_results

if TYPE_CHECKING:
    from ..fetch.response import Response

XML_REGEXP = r"(?i)((application|image|message|model)/((\w|\.|-)+\+?)?|text/)(wb)?xml"


class XMLNode(Node):
    """XML element supporting XPath expressions."""

    kind = "xml"
    expr_types = (XPATH_EXPR,)

    def __init__(self, element):
        self.element = element

    def find(self, expr: str, expr_type: str = "") -> Optional[Node]:
        nodes = self.find_all(expr, expr_type)
        return nodes[0] if nodes else None

    def find_all(self, expr: str, expr_type: str = "") -> List[Node]:
        self.check_expr_type(expr_type)
        return xpath_results(self.element.xpath(expr), XMLNode, self.expr_types)

    def value(self) -> Any:
        return "".join(self.element.itertext())

    def __repr__(self) -> str:
        return f"XMLNode(<{self.element.tag}>)"


def parse_xml(response: "Response") -> XMLNode:
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    root = etree.fromstring(response.body, parser=parser)
    return XMLNode(root)
