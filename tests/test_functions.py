from __future__ import annotations

from datetime import datetime

from esikit.core import functions


def test_base64_helpers() -> None:
    assert functions.call_builtin("base64_encode", {"input": "hello"}) == "aGVsbG8="
    assert functions.call_builtin("base64_decode", {"input": "aGVsbG8="}) == "hello"
    assert functions.call_builtin("base64_decode", {"input": "not base64!"}) == ""


def test_url_helpers() -> None:
    assert functions.call_builtin("url_encode", {"input": "a b&c"}) == "a+b%26c"
    assert functions.call_builtin("url_decode", {"input": "a+b%26c"}) == "a b&c"


def test_strlen_counts_characters() -> None:
    assert functions.call_builtin("strlen", {"input": "héllo"}) == "5"
    assert functions.call_builtin("strlen", {}) == "0"


def test_substr_clamps_and_bounds() -> None:
    assert functions.substr({"input": "hello", "start": "1", "length": "3"}) == "ell"
    assert functions.substr({"input": "hello", "start": "1", "length": "99"}) == "ello"
    assert functions.substr({"input": "hello", "start": "5", "length": "1"}) == ""
    assert functions.substr({"input": "hello", "start": "-1", "length": "2"}) == ""


def test_random_range() -> None:
    assert functions.random_integer({"min": "5", "max": "5"}) == "5"
    assert functions.random_integer({"min": "9", "max": "2"}) == "9"
    for _ in range(20):
        assert functions.random_integer({"min": "1", "max": "3"}) in {"1", "2", "3"}


def test_time_uses_format() -> None:
    fixed = datetime(2024, 3, 9, 14, 5, 6)

    assert functions.current_time({}, now=lambda: fixed) == "2024-03-09 14:05:06"
    assert functions.current_time({"format": "%Y/%m"}, now=lambda: fixed) == "2024/03"


def test_unknown_function_returns_none() -> None:
    assert functions.call_builtin("md5", {"input": "x"}) is None
