"""
HTTP response handed from the transport to the parsers and resolver.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from requests.structures import CaseInsensitiveDict

from ..core.errors import ConfigError

if TYPE_CHECKING:
    from ..core.harvester import Harvester, Output
    from ..core.rules import Rules


def declared_charset(content_type: str) -> Optional[str]:
    """Charset parameter of a Content-Type header value, if present."""
    for param in content_type.split(';')[1:]:
        key, _, value = param.partition('=')
        value = value.strip().strip('"')
        if key.strip().lower() == 'charset' and value:
            return value
    return None


@dataclass
class Response:
    """
    Fetched response.

    ``url`` is the final URL after redirects and ``redirects`` lists the URLs
    that issued each followed redirect, in order. ``body`` holds at most the
    configured maximum body size.

    A response remembers the Harvester that produced it, so followed links
    go back through the same delay, robots and parser collaborators.
    """
    url: str
    status_code: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""
    redirects: List[str] = field(default_factory=list)
    encoding: Optional[str] = None
    harvester: Optional["Harvester"] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def content_type(self) -> str:
        return self.headers.get('Content-Type', '')

    @property
    def charset(self) -> Optional[str]:
        """
        Encoding to decode the body with, or None for UTF-8.

        ``encoding`` only counts when the Content-Type names a charset;
        an implied default such as ISO-8859-1 for text/* is ignored.
        """
        if self.encoding and declared_charset(self.content_type):
            return self.encoding
        return None

    @property
    def text(self) -> str:
        """Body decoded with the declared charset, falling back to UTF-8."""
        try:
            return self.body.decode(self.charset or 'utf-8', errors='replace')
        except LookupError:
            return self.body.decode('utf-8', errors='replace')

    def serializable(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'code': self.status_code,
            'header': dict(self.headers),
            'redirects': list(self.redirects),
        }

    def do(self, rules: "Rules") -> "Response":
        """Make a request through the harvester that produced this response."""
        if self.harvester is None:
            raise ConfigError("response is not bound to a harvester")
        return self.harvester.do(rules)

    def extract(self, rules: "Rules") -> "Output":
        """Fetch and extract through the harvester that produced this response."""
        if self.harvester is None:
            raise ConfigError("response is not bound to a harvester")
        return self.harvester.extract(rules)
