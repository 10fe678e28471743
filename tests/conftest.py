import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from web_harvester.core.harvester import Harvester
from web_harvester.fetch.delay import RequestDelay
from web_harvester.fetch.response import Response
from web_harvester.fetch.robots import RobotsTxt
from web_harvester.parsers.registry import ParserRegistry

HTML = "text/html; charset=utf-8"
TEXT = "text/plain"
JSON = "application/json"
XML = "application/xml"


class FakeTransport:
    """
    In-memory transport.

    ``pages`` maps URLs to (status, content_type, body) tuples; unknown URLs
    raise requests.ConnectionError.
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.requests = []
        self.lock = threading.Lock()
        self.cleared = False

    def add(self, url, body, content_type=HTML, status=200):
        self.pages[url] = (status, content_type, body)

    def do(self, harvester, rules):
        with self.lock:
            self.requests.append({
                'url': rules.url,
                'method': rules.method,
                'user_agent': rules.header.get_first("User-Agent"),
                'time': time.monotonic(),
            })

        if rules.url not in self.pages:
            raise requests.ConnectionError(f"no route to {rules.url}")

        status, content_type, body = self.pages[rules.url]
        if isinstance(body, str):
            body = body.encode('utf-8')
        return Response(
            url=rules.url,
            status_code=status,
            headers={'Content-Type': content_type},
            body=body,
            encoding='utf-8',
            harvester=harvester,
        )

    def urls(self):
        with self.lock:
            return [request['url'] for request in self.requests]

    def clear(self):
        self.cleared = True


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def harvester(transport):
    return Harvester(
        transport=transport,
        delay=RequestDelay(),
        parser=ParserRegistry.default(),
    )


# ============================================================================
# Local HTTP server for the requests transport
# ============================================================================

PAGE = b"""<html><head><title>Local page</title></head>
<body><a href="/redirect/0">done</a></body></html>"""


class _Handler(BaseHTTPRequestHandler):
    robots_body = b"User-agent: *\nDisallow: /private\n"

    def do_GET(self):
        path = self.path.split('?')[0]

        if path.startswith('/redirect/'):
            remaining = int(path.rsplit('/', 1)[1])
            if remaining > 0:
                self.send_response(302)
                self.send_header('Location', f"/redirect/{remaining - 1}")
                self.send_header('Content-Length', '0')
                self.end_headers()
                return
            return self._send(b"done", 'text/plain')

        if path == '/big':
            return self._send(b"x" * 1000, 'text/plain')

        if path == '/set-cookie':
            self.send_response(200)
            self.send_header('Set-Cookie', 'session=abc123; Path=/')
            self.send_header('Content-Type', 'text/plain')
            self.send_header('Content-Length', '2')
            self.end_headers()
            self.wfile.write(b"ok")
            return

        if path == '/echo-cookie':
            return self._send((self.headers.get('Cookie') or '').encode(), 'text/plain')

        if path == '/echo-user-agent':
            return self._send((self.headers.get('User-Agent') or '').encode(), 'text/plain')

        if path == '/robots.txt':
            return self._send(self.robots_body, 'text/plain')

        if path == '/page':
            return self._send(PAGE, 'text/html; charset=utf-8')

        if path == '/utf8-text':
            return self._send("price: 5\u20ac caf\u00e9".encode('utf-8'), 'text/plain')

        if path == '/latin1-text':
            return self._send("caf\u00e9".encode('latin-1'), 'text/plain; charset=ISO-8859-1')

        self._send(b"not found", 'text/plain', status=404)

    def _send(self, body, content_type, status=200):
        self.send_response(status)
        self.send_header('Content-Type', content_type)
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def http_server():
    """Base URL of a local threaded HTTP server."""
    server = ThreadingHTTPServer(('127.0.0.1', 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def robots():
    return RobotsTxt()
