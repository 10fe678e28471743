"""
Plain text parsing - regular expressions over the body.
"""

import re
from typing import TYPE_CHECKING, Any, List, Optional

from .node import REGULAR_EXPR, Node

if TYPE_CHECKING:
    from ..fetch.response import Response

TEXT_REGEXP = r"^text\/plain"


class TextNode(Node):
    """
    Text matched by a regular expression.

    The root node holds the whole body; each match yields a new node holding
    the matched text (group 0), which can be searched further.
    """

    kind = "text"
    expr_types = (REGULAR_EXPR,)

    def __init__(self, text: str):
        self.text = text

    def find(self, expr: str, expr_type: str = "") -> Optional[Node]:
        self.check_expr_type(expr_type)
        match = re.search(expr, self.text)
        return TextNode(match.group(0)) if match else None

    def find_all(self, expr: str, expr_type: str = "") -> List[Node]:
        self.check_expr_type(expr_type)
        return [TextNode(match.group(0)) for match in re.finditer(expr, self.text)]

    def value(self) -> Any:
        return self.text

    def __repr__(self) -> str:
        preview = self.text if len(self.text) <= 40 else self.text[:37] + "..."
        return f"TextNode({preview!r})"


def parse_text(response: "Response") -> TextNode:
    return TextNode(response.text)
