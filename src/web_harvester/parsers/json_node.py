"""
JSON parsing.

A JSON document is mapped onto an lxml element tree so it can be queried with
XPath like any other document:

- object keys become child elements (``{"a": 1}`` -> ``<a>1</a>``)
- array items become ``<item>`` children
- keys that are not valid element names become ``<field name="...">``

The document root is a ``<root>`` element, so ``//title`` and
``/root/store/book`` both work. Every element carries a ``json-type``
attribute from which value() rebuilds the original Python value.
"""

import json
import re
from typing import TYPE_CHECKING, Any, List, Optional

from lxml import etree

from .node import XPATH_EXPR, Node, xpath_results

if TYPE_CHECKING:
    from ..fetch.response import Response

JSON_REGEXP = r"^application\/(json|x-json|([a-z]+\+json))"

ROOT_TAG = "root"
ITEM_TAG = "item"
FIELD_TAG = "field"
TYPE_ATTR = "json-type"

# Characters lxml refuses in text content
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class JSONNode(Node):
    """JSON value supporting XPath expressions."""

    kind = "json"
    expr_types = (XPATH_EXPR,)

    def __init__(self, element):
        self.element = element

    def find(self, expr: str, expr_type: str = "") -> Optional[Node]:
        nodes = self.find_all(expr, expr_type)
        return nodes[0] if nodes else None

    def find_all(self, expr: str, expr_type: str = "") -> List[Node]:
        self.check_expr_type(expr_type)
        return xpath_results(self.element.xpath(expr), JSONNode, self.expr_types)

    def value(self) -> Any:
        return element_value(self.element)

    def __repr__(self) -> str:
        return f"JSONNode(<{self.element.tag}>)"


def _new_element(key: str):
    try:
        return etree.Element(key)
    except ValueError:
        element = etree.Element(FIELD_TAG)
        element.set("name", key)
        return element


def _fill(element, data: Any):
    if isinstance(data, dict):
        element.set(TYPE_ATTR, "object")
        for key, item in data.items():
            child = _new_element(str(key))
            _fill(child, item)
            element.append(child)
    elif isinstance(data, list):
        element.set(TYPE_ATTR, "array")
        for item in data:
            child = etree.Element(ITEM_TAG)
            _fill(child, item)
            element.append(child)
    elif isinstance(data, bool):
        element.set(TYPE_ATTR, "boolean")
        element.text = "true" if data else "false"
    elif isinstance(data, (int, float)):
        element.set(TYPE_ATTR, "number")
        element.text = repr(data)
    elif data is None:
        element.set(TYPE_ATTR, "null")
    else:
        element.set(TYPE_ATTR, "string")
        element.text = _INVALID_XML_CHARS.sub("", str(data))


def build_tree(data: Any):
    """Map decoded JSON onto an lxml element rooted at ``<root>``."""
    root = etree.Element(ROOT_TAG)
    _fill(root, data)
    return root


def _key_of(element) -> str:
    if element.tag == FIELD_TAG and element.get("name") is not None:
        return element.get("name")
    return element.tag


def element_value(element) -> Any:
    """Rebuild the Python value an element was built from."""
    json_type = element.get(TYPE_ATTR)

    if json_type == "object":
        return {_key_of(child): element_value(child) for child in element}
    if json_type == "array":
        return [element_value(child) for child in element]
    if json_type == "number":
        text = element.text or "0"
        try:
            return int(text)
        except ValueError:
            return float(text)
    if json_type == "boolean":
        return element.text == "true"
    if json_type == "null":
        return None
    return element.text or ""


def parse_json(response: "Response") -> JSONNode:
    """
    Decode a JSON response body.

    Raises:
        ValueError: If the body is not valid JSON
    """
    data = json.loads(response.text)
    return JSONNode(build_tree(data))
