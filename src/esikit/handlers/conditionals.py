"""Handlers for ``esi:choose`` / ``esi:when`` / ``esi:otherwise``."""

from __future__ import annotations

from bs4.element import Tag

from ..core.context import ProcessingContext
from ..core.markup import (
    attribute,
    find_elements,
    first_child,
    inner_markup,
    remove,
    replace_with_markup,
)
from ..core.rules import EsiPhase, handles
from ..core.variables import is_truthy


def _select_branch(element: Tag, context: ProcessingContext) -> Tag | None:
    for branch in find_elements(element, ("when",), recursive=False):
        test = attribute(branch, "test")
        if not test:
            context.log("esi:when missing test attribute")
            continue
        if is_truthy(context.evaluate(test)):
            context.log("esi:when condition '%s' matched", test)
            return branch
    return first_child(element, "otherwise")


@handles("choose", phase=EsiPhase.CHOOSE, capability="choose", rescan=True)
def render_choose(element: Tag, context: ProcessingContext) -> None:
    """Substitute a choose block with its first matching branch."""

    branch = _select_branch(element, context)
    content = inner_markup(branch) if branch is not None else ""
    if content:
        replace_with_markup(element, content)
    else:
        remove(element)
