"""Handlers for fragment inclusion: ``esi:inline`` and ``esi:include``."""

from __future__ import annotations

from bs4.element import Tag

from ..core.context import ProcessingContext
from ..core.exceptions import FetchError, MarkupParseError, exception_hint
from ..core.markup import (
    attribute,
    element_kind,
    inner_markup,
    iter_ancestors,
    remove,
    replace_with_markup,
)
from ..core.rules import EsiPhase, handles


def _load_fragment(url: str, context: ProcessingContext) -> str:
    """Fetch a fragment and run it through the pipeline one level deeper."""
    fetcher = context.processor.fetcher
    resolved = fetcher.resolve(url, context.request.base_url)

    inline = context.scope.inline_fragments.get(resolved)
    if inline is not None:
        raw = inline
    else:
        if fetcher.is_cached(resolved):
            context.event("include_cached", {"url": resolved})
        else:
            context.event("include_fetch", {"url": resolved, "depth": context.request.depth})
        raw = fetcher.fetch(resolved, context.request.headers)

    try:
        nested = context.render(raw, context.request.child())
    except MarkupParseError as exc:
        raise FetchError(f"invalid fragment {resolved}: {exc}", url=resolved) from exc
    context.result.fetch_failures += nested.fetch_failures
    return nested.text


def _deferred_to_try(element: Tag, context: ProcessingContext) -> bool:
    """Includes inside a try block are rendered with their attempt or except branch."""
    if not context.capabilities.allows("try"):
        return False
    return any(element_kind(ancestor) == "try" for ancestor in iter_ancestors(element))


@handles("inline", phase=EsiPhase.INCLUDE, priority=0, capability="inline", rescan=True)
def register_inline(element: Tag, context: ProcessingContext) -> None:
    """Keep inline fragment content for later includes and unwrap it in place."""

    content = inner_markup(element)
    name = attribute(element, "name")
    if name:
        resolved = context.processor.fetcher.resolve(name, context.request.base_url)
        context.scope.inline_fragments[resolved] = content
    else:
        context.log("esi:inline missing name attribute")
    replace_with_markup(element, content)


@handles("include", phase=EsiPhase.INCLUDE, priority=10, capability="include")
def render_include(element: Tag, context: ProcessingContext) -> None:
    """Replace ``esi:include`` with the fetched fragment."""

    if _deferred_to_try(element, context):
        return

    limit = context.config.max_includes
    if not context.scope.claim_include(limit):
        if context.scope.include_count == limit + 1:
            context.processor.emitter.warning(f"Maximum includes exceeded: {limit}")
        return

    src = attribute(element, "src")
    if not src:
        context.log("esi:include missing src attribute")
        remove(element)
        return

    alt = attribute(element, "alt")
    if context.capabilities.variables:
        src = context.expand(src)
        alt = context.expand(alt) if alt else alt

    try:
        content = _load_fragment(src, context)
    except FetchError as exc:
        context.log("Include failed for %s: %s", src, exception_hint(exc))
        context.event("include_failed", {"url": src, "reason": exception_hint(exc)})
        if alt:
            try:
                content = _load_fragment(alt, context)
            except FetchError as alt_exc:
                context.log("Alt include failed for %s: %s", alt, exception_hint(alt_exc))
            else:
                replace_with_markup(element, content)
                return

        context.result.fetch_failures += 1
        if attribute(element, "onerror") == "continue":
            remove(element)
        elif context.debug:
            replace_with_markup(element, f"<!-- ESI include error: {exc} -->")
        else:
            remove(element)
        return

    replace_with_markup(element, content)
