"""
Node abstraction - uniform navigation over parsed content.

Every concrete node kind (HTML, XML, JSON, plain text) answers the same three
questions: find the first match, find all matches, and give me your value.
Each kind validates the expression types it understands; the resolver never
looks at node kinds.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from ..core.errors import ExprTypeError

XPATH_EXPR = "xpath"
CSS_SELECTOR = "css"
REGULAR_EXPR = "regular"


class Node(ABC):
    """Handle into a parsed content tree."""

    # Expression types accepted by the node kind; the first is the default
    expr_types: Sequence[str] = (XPATH_EXPR,)
    kind: str = "node"

    @abstractmethod
    def find(self, expr: str, expr_type: str = "") -> Optional["Node"]:
        """Return the first node matching ``expr``, or None."""
        pass

    @abstractmethod
    def find_all(self, expr: str, expr_type: str = "") -> List["Node"]:
        """Return every node matching ``expr`` (possibly empty)."""
        pass

    @abstractmethod
    def value(self) -> Any:
        """Return the scalar value of the node."""
        pass

    def check_expr_type(self, expr_type: str) -> str:
        """
        Normalize ``expr_type`` for this node kind.

        Raises:
            ExprTypeError: If the type is not supported by the node kind
        """
        if not expr_type:
            return self.expr_types[0]

        normalized = expr_type.lower()
        if normalized not in self.expr_types:
            raise ExprTypeError(expr_type, self.kind)
        return normalized


class ValueNode(Node):
    """
    Leaf result of a query that is not an element.

    XPath can select attribute values, text nodes, numbers or booleans; these
    have a value but nothing to search below them.
    """

    kind = "value"

    def __init__(self, data: Any, expr_types: Sequence[str] = (XPATH_EXPR,)):
        self.data = data
        self.expr_types = expr_types

    def find(self, expr: str, expr_type: str = "") -> Optional[Node]:
        self.check_expr_type(expr_type)
        return None

    def find_all(self, expr: str, expr_type: str = "") -> List[Node]:
        self.check_expr_type(expr_type)
        return []

    def value(self) -> Any:
        if isinstance(self.data, str):
            # lxml smart strings keep a reference to their tree
            return str(self.data)
        return self.data

    def __repr__(self) -> str:
        return f"ValueNode({self.data!r})"


def xpath_results(results: Any, wrap, expr_types: Sequence[str] = (XPATH_EXPR,)) -> List[Node]:
    """
    Convert an lxml ``xpath()`` result into nodes.

    Element results are wrapped with ``wrap``; strings, numbers and booleans
    become ValueNodes.
    """
    if not isinstance(results, list):
        return [ValueNode(results, expr_types)]

    nodes: List[Node] = []
    for item in results:
        if hasattr(item, 'tag') and isinstance(item.tag, str):
            nodes.append(wrap(item))
        elif hasattr(item, 'tag'):
            # Comments and processing instructions
            nodes.append(ValueNode(item.text or "", expr_types))
        else:
            nodes.append(ValueNode(item, expr_types))
    return nodes
