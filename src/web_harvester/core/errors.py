"""
Error taxonomy and the ErrorSet aggregate.

Every error raised by the harvester derives from HarvestError. Failures that
must not abort the surrounding extraction (sibling selectors, per-index
matches, followed links) are collected in an ErrorSet keyed by the path that
failed, so a caller always gets the complete failure report alongside the
partial data.
"""

import json
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple


class HarvestError(Exception):
    """Base class for all harvester errors."""
    pass


class ConfigError(HarvestError):
    """Raised when a required collaborator or the rules are missing."""
    pass


class NotMatchError(HarvestError):
    """Raised when no registered parser accepts the response Content-Type."""

    def __init__(self, content_type: str = ""):
        super().__init__(f"Content-Type does not match: {content_type!r}")
        self.content_type = content_type


class ExprTypeError(HarvestError):
    """Raised when the expression type is not supported by the node."""

    def __init__(self, expr_type: str = "", node_kind: str = ""):
        super().__init__(f"expression type {expr_type!r} not compatible with {node_kind or 'node'}")
        self.expr_type = expr_type
        self.node_kind = node_kind


class RobotsRestrictionError(HarvestError):
    """Raised when robots.txt denies access to the URL."""

    def __init__(self, url: str = ""):
        super().__init__(f"page not accessible due to robots.txt restriction: {url}")
        self.url = url


class RobotsStatusError(HarvestError):
    """Raised when robots.txt answers with a status that has no policy."""

    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"unexpected robots.txt status {status_code}: {url}")
        self.status_code = status_code
        self.url = url


class MaxRedirectsError(HarvestError):
    """Raised when the redirect limit is reached."""

    def __init__(self, limit: int, redirects: Optional[List[str]] = None):
        super().__init__(f"max redirects limit reached ({limit})")
        self.limit = limit
        self.redirects = list(redirects or [])


class ResponseBodySizeError(HarvestError):
    """
    Raised when the declared body length exceeds the configured maximum.

    The truncated response is still available on ``response``.
    """

    def __init__(self, limit: int, declared: int, response: Any = None):
        super().__init__(f"response body size {declared} exceeds limit {limit}")
        self.limit = limit
        self.declared = declared
        self.response = response


class FollowDepthError(HarvestError):
    """Raised when a followed link exceeds the maximum follow depth."""

    def __init__(self, depth: int, limit: int):
        super().__init__(f"follow depth {depth} exceeds limit {limit}")
        self.depth = depth
        self.limit = limit


class DuplicateSelectorError(HarvestError):
    """Raised for a sibling selector whose name is already taken."""

    def __init__(self, name: str):
        super().__init__(f"duplicate selector name: {name!r}")
        self.name = name


# Rule/selector field conversion errors

class FieldValueError(HarvestError):
    """Base class for rule field conversion errors."""
    pass


class MustBeStringError(FieldValueError):
    def __init__(self, value: Any = None):
        super().__init__(f"must be a string, got {type(value).__name__}")


class URLCoercionError(MustBeStringError):
    """Raised when a value cannot be used as a URL reference."""
    pass


class MustBeNumberError(FieldValueError):
    def __init__(self, value: Any = None):
        super().__init__(f"must be a number, got {type(value).__name__}")


class InvalidHeaderError(FieldValueError):
    def __init__(self, detail: str = ""):
        super().__init__(f"invalid header{': ' + detail if detail else ''}")


class NotAssignableError(FieldValueError):
    def __init__(self, field_name: str = ""):
        super().__init__(f"value is not assignable to field {field_name!r}")


class InvalidSelectorError(FieldValueError):
    def __init__(self, value: Any = None):
        super().__init__(f"invalid selector: {type(value).__name__}")


class InvalidSelectorsError(FieldValueError):
    def __init__(self, value: Any = None):
        super().__init__(f"invalid selectors: {type(value).__name__}")


class ErrorSet(HarvestError):
    """
    Named collection of errors.

    Adding an error under a name that is already taken stores it under
    ``name#1``, ``name#2``... so nothing is ever overwritten. Values are
    exceptions or nested ErrorSets.
    """

    def __init__(self, errors: Optional[Dict[str, BaseException]] = None):
        super().__init__()
        self._lock = threading.RLock()
        self._data: Dict[str, BaseException] = {}
        for key, err in (errors or {}).items():
            self.add(key, err)

    def add(self, key: str, err: Optional[BaseException]) -> "ErrorSet":
        """
        Add an error under ``key``.

        An empty key or a None error is ignored. Returns self.
        """
        if not key or err is None:
            return self

        with self._lock:
            name = key
            i = 1
            while name in self._data:
                name = f"{key}#{i}"
                i += 1
            self._data[name] = err
        return self

    def update(self, other: "ErrorSet") -> "ErrorSet":
        """Merge every entry of ``other`` into this set."""
        for key, err in other.items():
            self.add(key, err)
        return self

    def get(self, key: str) -> Optional[BaseException]:
        with self._lock:
            return self._data.get(key)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def items(self) -> List[Tuple[str, BaseException]]:
        with self._lock:
            return list(self._data.items())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __getitem__(self, key: str) -> BaseException:
        with self._lock:
            return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __bool__(self) -> bool:
        return len(self) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to name -> message (or nested dict for nested sets)."""
        result: Dict[str, Any] = {}
        for key, err in self.items():
            if isinstance(err, ErrorSet):
                result[key] = err.to_dict()
            else:
                result[key] = str(err) or err.__class__.__name__
        return result

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    def __repr__(self) -> str:
        return f"ErrorSet({self.to_dict()!r})"


def add_error(errs: Optional[BaseException], key: str, err: Optional[BaseException]) -> Optional[BaseException]:
    """
    Add ``err`` under ``key`` to ``errs`` and return the resulting ErrorSet.

    If ``errs`` is a plain exception it is promoted to an ErrorSet and kept
    under the key ``"#"``. With nothing to add, ``errs`` is returned as is.
    """
    if errs is None and (not key or err is None):
        return None

    if isinstance(errs, ErrorSet):
        return errs.add(key, err)

    result = ErrorSet()
    if errs is not None:
        result.add("#", errs)
    return result.add(key, err)
