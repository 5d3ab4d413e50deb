"""Built-in functions available to ``esi:function``."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable, Mapping
from datetime import datetime
from enum import Enum
import random
from urllib.parse import quote_plus, unquote_plus


DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

FunctionArguments = Mapping[str, str]


class BuiltinFunction(str, Enum):
    BASE64_ENCODE = "base64_encode"
    BASE64_DECODE = "base64_decode"
    URL_ENCODE = "url_encode"
    URL_DECODE = "url_decode"
    STRLEN = "strlen"
    SUBSTR = "substr"
    RANDOM = "random"
    TIME = "time"

    @classmethod
    def lookup(cls, name: str) -> BuiltinFunction | None:
        try:
            return cls(name)
        except ValueError:
            return None


def _as_int(value: str | None) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0


def base64_encode(args: FunctionArguments) -> str:
    return base64.b64encode(args.get("input", "").encode("utf-8")).decode("ascii")


def base64_decode(args: FunctionArguments) -> str:
    try:
        decoded = base64.b64decode(args.get("input", ""), validate=True)
        return decoded.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return ""


def url_encode(args: FunctionArguments) -> str:
    return quote_plus(args.get("input", ""))


def url_decode(args: FunctionArguments) -> str:
    return unquote_plus(args.get("input", ""))


def strlen(args: FunctionArguments) -> str:
    return str(len(args.get("input", "")))


def substr(args: FunctionArguments) -> str:
    """Slice ``input``; a start outside the string yields an empty result."""
    text = args.get("input", "")
    start = _as_int(args.get("start"))
    length = _as_int(args.get("length"))
    if start < 0 or start >= len(text):
        return ""
    end = min(start + max(length, 0), len(text))
    return text[start:end]


def random_integer(args: FunctionArguments) -> str:
    low = _as_int(args.get("min"))
    high = _as_int(args.get("max"))
    if high <= low:
        return str(low)
    return str(random.randint(low, high))


def current_time(args: FunctionArguments, *, now: Callable[[], datetime] = datetime.now) -> str:
    fmt = args.get("format") or DEFAULT_TIME_FORMAT
    return now().strftime(fmt)


BUILTINS: dict[BuiltinFunction, Callable[[FunctionArguments], str]] = {
    BuiltinFunction.BASE64_ENCODE: base64_encode,
    BuiltinFunction.BASE64_DECODE: base64_decode,
    BuiltinFunction.URL_ENCODE: url_encode,
    BuiltinFunction.URL_DECODE: url_decode,
    BuiltinFunction.STRLEN: strlen,
    BuiltinFunction.SUBSTR: substr,
    BuiltinFunction.RANDOM: random_integer,
    BuiltinFunction.TIME: current_time,
}


def call_builtin(name: str, args: FunctionArguments) -> str | None:
    """Run a built-in function; ``None`` signals an unknown name."""
    function = BuiltinFunction.lookup(name)
    if function is None:
        return None
    return BUILTINS[function](args)


__all__ = [
    "BUILTINS",
    "DEFAULT_TIME_FORMAT",
    "BuiltinFunction",
    "call_builtin",
]
