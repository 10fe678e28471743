"""Selector resolution and link following."""

from .resolver import find_all_selector, find_selector, find_selectors, follow_selector

__all__ = ['find_selectors', 'find_selector', 'find_all_selector', 'follow_selector']
