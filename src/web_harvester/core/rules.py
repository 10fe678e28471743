"""
Rules and Selector data model.

Rules describe one request plus the selector tree applied to its response.
Selectors are named, possibly nested, extraction instructions; a selector
flagged ``follow`` treats its matches as links and derives a new Rules for
each of them (see Selector.to_rules).

Both are built from plain dictionaries (decoded JSON or YAML) with
case-insensitive keys:

    rules = Rules.from_dict({
        "URL": "https://example.com",
        "Delay": 500,
        "Selectors": {
            "title": "//title",
            "links": {"Expr": "//a/@href", "All": True, "Follow": True},
        },
    })

Objects are pooled: release_rules()/release_selector() clear them
recursively before handing them back to the pool, so callers must not keep
references after releasing.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from requests.structures import CaseInsensitiveDict

from .errors import (
    ErrorSet,
    FieldValueError,
    InvalidHeaderError,
    InvalidSelectorError,
    InvalidSelectorsError,
    MustBeNumberError,
    NotAssignableError,
    URLCoercionError,
)

DEFAULT_USER_AGENT = "web-harvester/1.0"


class Header(CaseInsensitiveDict):
    """Case-insensitive HTTP header multimap (name -> list of values)."""

    @classmethod
    def from_mapping(cls, mapping: Optional[Dict[str, Any]]) -> "Header":
        header = cls()
        for name, values in (mapping or {}).items():
            if isinstance(values, str):
                header.add(name, values)
            else:
                for value in values:
                    header.add(name, value)
        return header

    def add(self, name: str, value: str):
        if name in self:
            self[name].append(value)
        else:
            self[name] = [value]

    def set(self, name: str, value: str):
        self[name] = [value]

    def get_first(self, name: str, default: str = "") -> str:
        values = self.get(name)
        if values:
            return values[0]
        return default

    def copy(self) -> "Header":
        header = Header()
        for name, values in self.items():
            header[name] = list(values)
        return header

    def to_request_headers(self) -> Dict[str, str]:
        """Flatten to the single-valued mapping requests expects."""
        return {name: ", ".join(values) for name, values in self.items() if values}


class _ObjectPool:
    """Small bounded pool of reusable objects."""

    def __init__(self, factory: Callable[[], Any], max_size: int = 256):
        self.factory = factory
        self.max_size = max_size
        self._items: deque = deque()
        self._lock = threading.Lock()

    def acquire(self) -> Any:
        with self._lock:
            if self._items:
                return self._items.pop()
        return self.factory()

    def release(self, item: Any):
        with self._lock:
            if len(self._items) < self.max_size:
                self._items.append(item)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


@dataclass
class Selector:
    """Named extraction instruction."""
    name: str = ""
    expr: str = ""
    type: str = ""  # Empty means the node kind's default expression type
    all: bool = False
    follow: bool = False

    # Request overrides used when the selector derives new rules
    method: str = ""
    proxy: str = ""
    header: Optional[Header] = None
    timeout: float = 0.0  # Seconds; <= 0 inherits the source timeout

    selectors: List["Selector"] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_rules(self, src: "Rules") -> "Rules":
        """
        Derive the Rules used for this selector's nested evaluation or links.

        Method, proxy and header come from the selector when set, otherwise
        from ``src``. Without a selector header only the source User-Agent is
        carried over. Cookies, robots, delay, redirects and body size limits
        are always inherited. Nested selectors are cloned.
        """
        rules = acquire_rules()

        rules.method = self.method or src.method
        rules.proxy = self.proxy or src.proxy

        if self.header is not None:
            rules.header = self.header.copy()
        else:
            rules.header = Header()
            if src.header is not None:
                user_agent = src.header.get_first("User-Agent")
                if user_agent:
                    rules.header.set("User-Agent", user_agent)

        rules.timeout = self.timeout if self.timeout > 0 else src.timeout

        rules.cookies = src.cookies
        rules.ignore_robots_txt = src.ignore_robots_txt
        rules.delay = src.delay
        rules.redirects = src.redirects
        rules.response_body_size = src.response_body_size
        rules.depth = src.depth

        rules.selectors = clone_selectors(self.selectors)
        rules.extra = dict(self.extra)
        return rules

    def clone(self) -> "Selector":
        selector = acquire_selector()

        selector.name = self.name
        selector.expr = self.expr
        selector.type = self.type
        selector.all = self.all
        selector.follow = self.follow

        selector.method = self.method
        selector.proxy = self.proxy
        selector.header = self.header.copy() if self.header is not None else None
        selector.timeout = self.timeout

        selector.selectors = clone_selectors(self.selectors)
        selector.extra = dict(self.extra)
        return selector

    def clear(self):
        """Reset every field; nested selectors are released."""
        self.name = ""
        self.expr = ""
        self.type = ""
        self.all = False
        self.follow = False

        self.method = ""
        self.proxy = ""
        self.header = None
        self.timeout = 0.0

        self.selectors = release_selectors(self.selectors)
        self.extra = {}


@dataclass
class Rules:
    """Request configuration plus the selector tree applied to the response."""
    method: str = ""
    url: str = ""
    proxy: str = ""
    header: Header = field(default_factory=Header)
    timeout: float = 0.0  # Seconds, 0 = no timeout
    cookies: bool = False
    ignore_robots_txt: bool = False
    delay: float = 0.0  # Seconds between requests to the same host
    redirects: int = 0  # Maximum redirects to follow
    response_body_size: int = 0  # Maximum body bytes, 0 = unlimited

    selectors: List[Selector] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    # Number of followed links between the caller's rules and these rules
    depth: int = 0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], defaults: Optional["Rules"] = None) -> "Rules":
        """
        Build Rules from a raw dictionary.

        Recognized keys are matched case-insensitively (snake_case and
        kebab-case are accepted too); unrecognized keys are kept in ``extra``.
        Timeout and Delay are milliseconds. Field conversion failures are
        collected and raised together as an ErrorSet keyed by field name.

        Args:
            raw: Decoded rules mapping
            defaults: Optional rules whose values are used for missing keys

        Raises:
            ErrorSet: If one or more fields could not be converted
        """
        if not isinstance(raw, dict):
            raise NotAssignableError("rules")

        rules = defaults.clone() if defaults is not None else acquire_rules()
        rules.extra = {}

        errs = _process_raw(raw, rules, _RULES_FIELDS, rules.extra)
        if errs:
            release_rules(rules)
            raise errs
        return rules

    def clone(self) -> "Rules":
        """Return a deep copy; ``extra`` values are copied shallowly."""
        rules = acquire_rules()

        rules.method = self.method
        rules.url = self.url
        rules.proxy = self.proxy
        rules.header = self.header.copy() if self.header is not None else Header()
        rules.timeout = self.timeout
        rules.cookies = self.cookies
        rules.ignore_robots_txt = self.ignore_robots_txt
        rules.delay = self.delay
        rules.redirects = self.redirects
        rules.response_body_size = self.response_body_size
        rules.depth = self.depth

        rules.selectors = clone_selectors(self.selectors)
        rules.extra = dict(self.extra)
        return rules

    def clear(self):
        """Reset every field; selectors are released."""
        self.method = ""
        self.url = ""
        self.proxy = ""
        self.header = Header()
        self.timeout = 0.0
        self.cookies = False
        self.ignore_robots_txt = False
        self.delay = 0.0
        self.redirects = 0
        self.response_body_size = 0
        self.depth = 0

        self.selectors = release_selectors(self.selectors)
        self.extra = {}

    @property
    def host(self) -> str:
        return urlparse(self.url).netloc



_rules_pool = _ObjectPool(Rules)
_selector_pool = _ObjectPool(Selector)


def acquire_rules() -> Rules:
    return _rules_pool.acquire()


def acquire_selector() -> Selector:
    return _selector_pool.acquire()


def release_rules(rules: Optional[Rules]):
    """Clear ``rules`` (recursively releasing selectors) and pool it."""
    if rules is None:
        return
    rules.clear()
    _rules_pool.release(rules)


def release_selector(selector: Selector):
    selector.clear()
    _selector_pool.release(selector)


def release_selectors(selectors: Iterable[Selector]) -> List[Selector]:
    """Release every selector and return an empty list to assign back."""
    for selector in selectors or []:
        release_selector(selector)
    return []


def clone_selectors(selectors: Iterable[Selector]) -> List[Selector]:
    return [selector.clone() for selector in selectors or []]


# ============================================================================
# Raw value conversion
# ============================================================================

def to_url(value: Any) -> str:
    """Coerce a raw value into a URL reference string."""
    if not isinstance(value, str):
        raise URLCoercionError(value)
    try:
        urlparse(value)
    except ValueError as e:
        raise URLCoercionError(value) from e
    return value.strip()


def _to_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MustBeNumberError(value)
    return int(value)


def _to_duration(value: Any) -> float:
    """Milliseconds to seconds."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MustBeNumberError(value)
    return value / 1000.0


def _to_str(value: Any) -> str:
    if not isinstance(value, str):
        raise NotAssignableError(type(value).__name__)
    return value


def _to_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise NotAssignableError(type(value).__name__)
    return value


def _to_header(value: Any) -> Header:
    header = Header()
    if value is None:
        return header

    if not isinstance(value, dict):
        raise InvalidHeaderError(f"expected mapping, got {type(value).__name__}")

    for name, item in value.items():
        if isinstance(item, str):
            header.add(name, item)
        elif isinstance(item, (list, tuple)):
            for element in item:
                if not isinstance(element, str):
                    raise InvalidHeaderError(f"value of {name!r} must be a string")
                header.add(name, element)
        else:
            raise InvalidHeaderError(f"value of {name!r} must be a string or list")
    return header


def _new_selector(name: str, raw: Any) -> Selector:
    selector = acquire_selector()

    if isinstance(raw, str):
        selector.expr = raw
    elif isinstance(raw, dict):
        selector.extra = {}
        errs = _process_raw(raw, selector, _SELECTOR_FIELDS, selector.extra)
        if errs:
            release_selector(selector)
            raise errs
    else:
        release_selector(selector)
        raise InvalidSelectorError(raw)

    selector.name = name
    return selector


def _new_selectors(raw: Any) -> List[Selector]:
    if raw is None:
        return []

    if not isinstance(raw, dict):
        raise InvalidSelectorsError(raw)

    selectors: List[Selector] = []
    errs = ErrorSet()
    for name, value in raw.items():
        if not name or value is None:
            continue
        try:
            selectors.append(_new_selector(str(name), value))
        except (FieldValueError, ErrorSet) as e:
            errs.add(str(name), e)

    if errs:
        release_selectors(selectors)
        raise errs
    return selectors


def _normalize_key(key: str) -> str:
    return key.replace('_', '').replace('-', '').lower()


_RULES_FIELDS: Dict[str, tuple] = {
    'method': ('method', _to_str),
    'url': ('url', to_url),
    'proxy': ('proxy', to_url),
    'header': ('header', _to_header),
    'timeout': ('timeout', _to_duration),
    'cookies': ('cookies', _to_bool),
    'ignorerobotstxt': ('ignore_robots_txt', _to_bool),
    'delay': ('delay', _to_duration),
    'redirects': ('redirects', _to_int),
    'responsebodysize': ('response_body_size', _to_int),
    'selectors': ('selectors', _new_selectors),
}

_SELECTOR_FIELDS: Dict[str, tuple] = {
    'expr': ('expr', _to_str),
    'type': ('type', _to_str),
    'all': ('all', _to_bool),
    'follow': ('follow', _to_bool),
    'method': ('method', _to_str),
    'proxy': ('proxy', to_url),
    'header': ('header', _to_header),
    'timeout': ('timeout', _to_duration),
    'selectors': ('selectors', _new_selectors),
}


def _process_raw(raw: Dict[str, Any], target: Union[Rules, Selector],
                 fields: Dict[str, tuple], extra: Dict[str, Any]) -> ErrorSet:
    """Assign recognized keys of ``raw`` onto ``target``; the rest go to ``extra``."""
    errs = ErrorSet()
    for key, value in raw.items():
        spec = fields.get(_normalize_key(str(key)))
        if spec is None:
            extra[key] = value
            continue

        attr, convert = spec
        try:
            converted = convert(value)
        except (FieldValueError, ErrorSet) as e:
            errs.add(str(key), e)
            continue

        if attr == 'selectors':
            release_selectors(getattr(target, attr))
        setattr(target, attr, converted)
    return errs


