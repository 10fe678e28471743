"""
HTTP transport built on requests.

Sessions are kept per thread (requests.Session is not thread-safe) and share
one cookie jar, used only when the rules enable cookies. Redirects are
followed hop by hop so the harvester can bound them and record every URL
that redirected.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from requests.cookies import RequestsCookieJar
from urllib3.util.retry import Retry

from ..core.errors import MaxRedirectsError, ResponseBodySizeError
from .response import Response, declared_charset

if TYPE_CHECKING:
    from ..core.harvester import Harvester
    from ..core.rules import Rules


@dataclass
class FetchConfig:
    """Configuration for the HTTP transport."""
    user_agent: str = "web-harvester/1.0"
    timeout_seconds: float = 30.0  # Used when the rules give no timeout
    verify_ssl: bool = True

    # Retry settings
    max_retries: int = 3
    retry_backoff_factor: float = 0.5
    retry_on_status: List[int] = field(default_factory=lambda: [429, 500, 502, 503, 504])

    # Connection pooling
    pool_connections: int = 10
    pool_maxsize: int = 20

    chunk_size: int = 8192


class SessionManager:
    """Manages one requests session per thread."""

    def __init__(self, config: FetchConfig):
        self.config = config
        self.sessions: Dict[int, requests.Session] = {}
        self.lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_session(self) -> requests.Session:
        thread_id = threading.get_ident()
        with self.lock:
            if thread_id not in self.sessions:
                self.sessions[thread_id] = self._create_session()
            return self.sessions[thread_id]

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=self.config.retry_backoff_factor,
            status_forcelist=self.config.retry_on_status,
            allowed_methods=["GET", "HEAD"],
            redirect=False,
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy,
                              pool_connections=self.config.pool_connections,
                              pool_maxsize=self.config.pool_maxsize)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.9,*/*;q=0.8',
            'User-Agent': self.config.user_agent,
        })
        self.logger.debug(f"Created session for thread {threading.get_ident()}")
        return session

    def close_all(self):
        with self.lock:
            for session in self.sessions.values():
                session.close()
            self.sessions.clear()


class HTTPTransport:
    """
    Makes HTTP requests based on rules.

    See Harvester.do for the surrounding robots and delay handling.
    """

    def __init__(self, config: Optional[FetchConfig] = None,
                 cookie_jar: Optional[RequestsCookieJar] = None):
        self.config = config or FetchConfig()
        self.cookie_jar = cookie_jar if cookie_jar is not None else RequestsCookieJar()
        self.session_manager = SessionManager(self.config)
        self.logger = logging.getLogger(self.__class__.__name__)

    def do(self, harvester: "Harvester", rules: "Rules") -> Response:
        """
        Send the request described by ``rules``.

        Raises:
            MaxRedirectsError: More than ``rules.redirects`` redirects
            ResponseBodySizeError: Declared body larger than
                ``rules.response_body_size``; the truncated response is
                attached to the error
            requests.RequestException: Transport failures
        """
        session = self.session_manager.get_session()
        # Per-request jar: the shared one when cookies are enabled
        session.cookies = self.cookie_jar if rules.cookies else RequestsCookieJar()

        send_kwargs = {
            'stream': True,
            'timeout': rules.timeout if rules.timeout > 0 else self.config.timeout_seconds,
            'verify': self.config.verify_ssl,
            'proxies': {'http': rules.proxy, 'https': rules.proxy} if rules.proxy else {},
        }

        request = requests.Request(
            method=(rules.method or "GET").upper(),
            url=rules.url,
            headers=rules.header.to_request_headers(),
        )
        prepared = session.prepare_request(request)

        start_time = time.time()
        http_response = session.send(prepared, allow_redirects=False, **send_kwargs)
        http_response, redirects = self._follow_redirects(session, http_response,
                                                          rules.redirects, send_kwargs)

        body, declared = self._read_body(http_response, rules.response_body_size)
        response = Response(
            url=http_response.url,
            status_code=http_response.status_code,
            headers=http_response.headers,
            body=body,
            redirects=redirects,
            encoding=declared_charset(http_response.headers.get('Content-Type', '')),
            harvester=harvester,
        )

        self.logger.info(f"Fetched: {rules.url} ({response.status_code}, {len(body)}b, "
                         f"{time.time() - start_time:.2f}s)")

        limit = rules.response_body_size
        if limit > 0 and declared is not None and declared > limit:
            raise ResponseBodySizeError(limit, declared, response=response)
        return response

    def _follow_redirects(self, session: requests.Session, http_response: requests.Response,
                          max_redirects: int, send_kwargs: dict) -> Tuple[requests.Response, List[str]]:
        redirects: List[str] = []
        while http_response.is_redirect:
            if len(redirects) + 1 > max_redirects:
                http_response.close()
                raise MaxRedirectsError(max_redirects, redirects)

            redirects.append(http_response.url)
            # requests prepares the next hop (method, auth, cookies) on send
            next_request = http_response.next
            http_response.close()
            http_response = session.send(next_request, allow_redirects=False, **send_kwargs)
        return http_response, redirects

    def _read_body(self, http_response: requests.Response, limit: int) -> Tuple[bytes, Optional[int]]:
        """Read at most ``limit`` bytes (all when limit <= 0)."""
        declared = None
        content_length = http_response.headers.get('Content-Length')
        if content_length and content_length.isdigit():
            declared = int(content_length)

        chunks = []
        size = 0
        try:
            for chunk in http_response.iter_content(chunk_size=self.config.chunk_size):
                if limit > 0 and size + len(chunk) >= limit:
                    chunks.append(chunk[:limit - size])
                    size = limit
                    break
                chunks.append(chunk)
                size += len(chunk)
        finally:
            http_response.close()
        return b"".join(chunks), declared

    def clear(self):
        """Drop stored cookies and close every session."""
        self.cookie_jar.clear()
        self.session_manager.close_all()
