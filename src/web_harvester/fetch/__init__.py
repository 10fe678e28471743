"""Request orchestration: transport, per-host delay and robots.txt."""

from .delay import RequestDelay
from .response import Response
from .robots import RobotsTxt
from .transport import FetchConfig, HTTPTransport

__all__ = ['RequestDelay', 'Response', 'RobotsTxt', 'FetchConfig', 'HTTPTransport']
