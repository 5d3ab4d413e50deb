"""Baseline handlers: variable blocks and element removal."""

from __future__ import annotations

from bs4.element import Tag

from ..core.context import ProcessingContext
from ..core.markup import inner_markup, remove, replace_with_markup
from ..core.rules import EsiPhase, handles


@handles("vars", phase=EsiPhase.VARS, capability="vars")
def expand_vars(element: Tag, context: ProcessingContext) -> None:
    """Expand variables inside ``esi:vars`` and unwrap it."""

    replace_with_markup(element, context.expand(inner_markup(element)))


@handles("comment", phase=EsiPhase.CLEANUP, capability="comment")
def drop_comment(element: Tag, context: ProcessingContext) -> None:
    remove(element)


@handles("remove", phase=EsiPhase.CLEANUP, capability="remove")
def drop_remove(element: Tag, context: ProcessingContext) -> None:
    remove(element)


@handles("debug", phase=EsiPhase.CLEANUP, name="drop_debug", capability="debug")
def drop_debug(element: Tag, context: ProcessingContext) -> None:
    """Elide debug elements left in the tree when debugging is off."""

    if not context.debug:
        remove(element)
