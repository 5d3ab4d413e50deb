"""Custom exception hierarchy for the ESI processing pipeline."""

from __future__ import annotations


class EsiError(RuntimeError):
    """Base exception for ESI processing failures."""


class DepthExceededError(EsiError):
    """Raised when nested processing goes deeper than the configured maximum."""

    def __init__(self, depth: int, max_depth: int) -> None:
        super().__init__(f"maximum include depth exceeded: {max_depth} (depth {depth})")
        self.depth = depth
        self.max_depth = max_depth


class FetchError(EsiError):
    """Raised when a fragment cannot be retrieved."""

    def __init__(self, message: str, *, url: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class MarkupParseError(EsiError):
    """Raised when the input markup cannot be turned into a document tree."""


class ConfigurationError(EsiError):
    """Raised when processor settings are invalid."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None
