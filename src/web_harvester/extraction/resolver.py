"""
Selector resolution.

Walks a selector tree against a parsed node and produces the extracted data
together with the structured report of everything that failed. A failing
selector never aborts its siblings: its error is recorded under its name and
evaluation continues, so the caller gets as much data as could be extracted.

Selectors flagged ``follow`` treat their matches as links. Each link is
fetched and extracted through the response's harvester with rules derived
from the selector (see Selector.to_rules).
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

from ..core.errors import DuplicateSelectorError, ErrorSet, FieldValueError
from ..core.rules import release_rules, to_url

if TYPE_CHECKING:
    from ..core.rules import Rules, Selector
    from ..fetch.response import Response
    from ..parsers.node import Node

logger = logging.getLogger(__name__)

Found = Tuple[Any, Optional[ErrorSet]]


def find_selectors(rules: "Rules", response: "Response",
                   parent: Optional["Node"]) -> Tuple[Optional[Dict[str, Any]], Optional[ErrorSet]]:
    """
    Evaluate every selector of ``rules`` against ``parent``.

    Returns:
        (data, errors): data maps selector names to extracted values; errors
        is None when every selector succeeded. Partial values of selectors
        with nested failures are kept in data.
    """
    if response is None or parent is None:
        return None, None

    data: Dict[str, Any] = {}
    errs = ErrorSet()
    seen = set()

    for selector in rules.selectors:
        if selector.name in seen:
            logger.warning(f"Duplicate selector {selector.name!r} skipped")
            errs.add(selector.name, DuplicateSelectorError(selector.name))
            continue
        seen.add(selector.name)

        try:
            value, sub_errs = find_selector(rules, response, selector, parent)
        except Exception as e:
            logger.warning(f"Selector {selector.name!r} failed: {e}")
            errs.add(selector.name, e)
            continue

        data[selector.name] = value
        if sub_errs:
            errs.add(selector.name, sub_errs)

    return data, (errs if errs else None)


def find_selector(src: "Rules", response: "Response", selector: "Selector", parent: "Node") -> Found:
    """Evaluate one selector; expression errors propagate to the caller."""
    if selector.all:
        return find_all_selector(src, response, selector, parent)

    child = parent.find(selector.expr, selector.type)
    logger.debug(f"Selector {selector.name!r} ({selector.expr!r}): "
                 f"{'match' if child is not None else 'no match'}")
    if child is None:
        return None, None

    if selector.follow:
        rules = selector.to_rules(src)
        try:
            return follow_selector(rules, response, [child.value()])
        finally:
            release_rules(rules)

    if selector.selectors:
        rules = selector.to_rules(src)
        try:
            return find_selectors(rules, response, child)
        finally:
            release_rules(rules)

    return child.value(), None


def find_all_selector(src: "Rules", response: "Response", selector: "Selector", parent: "Node") -> Found:
    """
    Evaluate an ``all`` selector.

    Nested selectors run against every match independently; the errors of
    match ``i`` are recorded under the key ``str(i)`` of a nested ErrorSet.
    """
    children = parent.find_all(selector.expr, selector.type)
    logger.debug(f"Selector {selector.name!r} ({selector.expr!r}): {len(children)} matches")

    if not selector.follow and selector.selectors:
        rules = selector.to_rules(src)
        try:
            result: List[Any] = []
            errs = ErrorSet()
            for i, child in enumerate(children):
                found, child_errs = find_selectors(rules, response, child)
                result.append(found)
                if child_errs:
                    errs.add(str(i), child_errs)
            return result, (errs if errs else None)
        finally:
            release_rules(rules)

    values = [child.value() for child in children]

    if selector.follow:
        rules = selector.to_rules(src)
        try:
            return follow_selector(rules, response, values)
        finally:
            release_rules(rules)

    return values, None


def follow_selector(rules: "Rules", response: "Response", raw_urls: List[Any]) -> Found:
    """
    Fetch and extract every link in ``raw_urls``.

    Relative links are resolved against the response URL. A value that is
    not a URL, a failed fetch or an extraction with errors is recorded under
    the value (or URL) and contributes no output; the other links proceed.

    Returns:
        (outputs, errors): serialized outputs in link order
    """
    errs = ErrorSet()
    urls: List[str] = []

    for raw in raw_urls:
        try:
            url = to_url(raw)
        except FieldValueError as e:
            errs.add(str(raw), e)
            continue
        urls.append(urljoin(response.url, url))

    result: List[Dict[str, Any]] = []
    for url in urls:
        child_rules = rules.clone()
        child_rules.url = url
        child_rules.depth = rules.depth + 1

        try:
            output = response.extract(child_rules)
        except Exception as e:
            logger.warning(f"Follow {url} failed: {e}")
            errs.add(url, e)
            continue
        finally:
            release_rules(child_rules)

        if output.errors:
            logger.warning(f"Follow {url} reported errors: {output.errors}")
            errs.add(url, output.errors)
            continue
        result.append(output.serializable())

    return result, (errs if errs else None)
