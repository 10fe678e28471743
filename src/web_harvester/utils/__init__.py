"""
Utilities shared across the harvester packages.
"""

from .locks import ReadWriteLock

__all__ = [
    'ReadWriteLock',
]
