"""Handlers for the extension elements: assign, eval, function, dictionary, debug."""

from __future__ import annotations

from datetime import datetime

from bs4.element import Tag

from ..core.context import ProcessingContext
from ..core.functions import call_builtin
from ..core.markup import attribute, remove, replace_with_markup
from ..core.rules import EsiPhase, handles


_FUNCTION_RESERVED = frozenset({"name"})


def _single_line(text: str) -> str:
    return " ".join(text.split()).replace("-->", "--&gt;")


def _pairs(label: str, values: dict[str, str]) -> str:
    body = " ".join(f"{name}={value}" for name, value in values.items())
    return f"{label}: {body}".rstrip()


@handles("assign", phase=EsiPhase.EXTENSIONS, priority=0, capability="assign")
def assign_variable(element: Tag, context: ProcessingContext) -> None:
    """Store a request variable and drop the element."""

    name = attribute(element, "name")
    if not name:
        context.log("esi:assign missing name attribute")
        remove(element)
        return

    value = attribute(element, "value")
    if value is None:
        value = element.get_text()
    context.request.variables[name] = context.expand(value)
    context.log("Assigned variable %s = %s", name, context.request.variables[name])
    remove(element)


@handles("eval", phase=EsiPhase.EXTENSIONS, priority=10, capability="eval")
def evaluate_expression(element: Tag, context: ProcessingContext) -> None:
    """Replace ``esi:eval`` with the result of its expression."""

    expression = attribute(element, "expr")
    if not expression:
        context.log("esi:eval missing expr attribute")
        remove(element)
        return

    result = context.evaluate(expression)
    context.log("Evaluated expression: %s = %s", expression, result)
    replace_with_markup(element, result)


@handles("function", phase=EsiPhase.EXTENSIONS, priority=20, capability="function")
def call_function(element: Tag, context: ProcessingContext) -> None:
    """Replace ``esi:function`` with the output of a built-in function."""

    name = attribute(element, "name")
    if not name:
        context.log("esi:function missing name attribute")
        remove(element)
        return

    arguments = {
        key: context.expand(attribute(element, key) or "")
        for key in element.attrs
        if key not in _FUNCTION_RESERVED
    }
    result = call_builtin(name, arguments)
    if result is None:
        context.log("Unknown ESI function: %s", name)
        result = ""
    context.log("Executed function: %s = %s", name, result)
    replace_with_markup(element, result)


@handles("dictionary", phase=EsiPhase.EXTENSIONS, priority=30, capability="dictionary")
def lookup_dictionary(element: Tag, context: ProcessingContext) -> None:
    """Resolve ``esi:dictionary`` to its default value.

    Dictionary sources are never fetched; the lookup always falls back to the
    ``default`` attribute.
    """

    src = attribute(element, "src")
    key = attribute(element, "key")
    if src is None or key is None:
        context.log("esi:dictionary missing src or key attribute")
        remove(element)
        return

    context.log("Dictionary lookup not implemented: %s[%s]", src, key)
    context.event("dictionary_stub", {"src": src, "key": key})
    replace_with_markup(element, attribute(element, "default") or "")


@handles("debug", phase=EsiPhase.EXTENSIONS, priority=40, capability="debug")
def render_debug(element: Tag, context: ProcessingContext) -> None:
    """Turn ``esi:debug`` into a markup comment when debugging."""

    if not context.debug:
        remove(element)
        return

    kind = attribute(element, "type")
    if kind == "vars":
        output = _pairs("Variables", context.request.variables)
    elif kind == "headers":
        output = _pairs("Headers", dict(context.request.headers))
    elif kind == "cookies":
        output = _pairs("Cookies", context.request.cookies)
    elif kind == "time":
        output = datetime.now().astimezone().isoformat(timespec="seconds")
    else:
        output = context.expand(element.get_text())

    replace_with_markup(element, f"<!-- ESI DEBUG: {_single_line(output)} -->")


@handles("include", phase=EsiPhase.EXTENSIONS, priority=50, name="annotate_include")
def annotate_include(element: Tag, context: ProcessingContext) -> None:
    """Report vendor include attributes that are accepted but not acted upon."""

    if not context.debug:
        return
    timeout = attribute(element, "timeout")
    if timeout is not None:
        context.log("Include timeout: %s", timeout)
    cacheable = attribute(element, "cacheable")
    if cacheable is not None:
        context.log("Include cacheable: %s", cacheable)
    method = attribute(element, "method")
    if method is not None and method.upper() != "GET":
        context.log("Include method: %s", method)
