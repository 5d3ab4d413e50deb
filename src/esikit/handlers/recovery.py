"""Handler for ``esi:try`` / ``esi:attempt`` / ``esi:except``."""

from __future__ import annotations

from bs4.element import Tag

from ..core.context import ProcessingContext
from ..core.exceptions import DepthExceededError, EsiError
from ..core.markup import element_kind, first_child, inner_markup, remove, replace_with_markup
from ..core.rules import EsiPhase, handles


def _render_branch(branch: Tag, context: ProcessingContext) -> tuple[str, bool]:
    """Render a branch, returning its output and whether it failed."""
    try:
        result = context.render(inner_markup(branch))
    except DepthExceededError:
        raise
    except EsiError as exc:
        context.log("Error processing esi:%s content: %s", element_kind(branch), exc)
        return "", True
    return result.text, context.processor.failure_detector.failed(result)


@handles("try", phase=EsiPhase.TRY, capability="try")
def render_try(element: Tag, context: ProcessingContext) -> None:
    """Use the attempt output, or the except output when the attempt failed."""

    attempt = first_child(element, "attempt")
    fallback = first_child(element, "except")

    content = ""
    if attempt is not None:
        content, failed = _render_branch(attempt, context)
        if failed:
            content = ""
            if fallback is not None:
                context.log("Using esi:except content due to error")
                content, _ = _render_branch(fallback, context)

    if content:
        replace_with_markup(element, content)
    else:
        remove(element)
