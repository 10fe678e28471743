"""Content parsers producing uniform Node trees."""

from .html import HTMLNode, parse_html
from .json_node import JSONNode, parse_json
from .node import CSS_SELECTOR, REGULAR_EXPR, XPATH_EXPR, Node, ValueNode
from .registry import ParserRegistry
from .text import TextNode, parse_text
from .xml import XMLNode, parse_xml

__all__ = [
    'Node',
    'ValueNode',
    'HTMLNode',
    'XMLNode',
    'JSONNode',
    'TextNode',
    'ParserRegistry',
    'parse_html',
    'parse_xml',
    'parse_json',
    'parse_text',
    'XPATH_EXPR',
    'CSS_SELECTOR',
    'REGULAR_EXPR',
]
