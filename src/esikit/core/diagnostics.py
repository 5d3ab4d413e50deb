"""Diagnostic abstractions shared across the processing pipeline."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Interface used to surface debug messages, warnings and structured events."""

    debug_enabled: bool

    def debug(self, message: str, *args: Any) -> None: ...

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Emitter that ignores every diagnostic."""

    debug_enabled: bool = False

    def debug(self, message: str, *args: Any) -> None:
        return

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Emitter that forwards diagnostics to the standard logging module."""

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def debug(self, message: str, *args: Any) -> None:
        if not self.debug_enabled:
            return
        self._logger.debug(message, *args)

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.warning(message, exc_info=exc)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.error(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            self._logger.info(message)
            return
        self._logger.debug("diagnostic event %s: %s", name, dict(payload))


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a human-friendly summary for selected diagnostic events."""
    data = dict(payload)

    if name == "include_fetch":
        url = data.get("url") or "<unknown>"
        depth = data.get("depth")
        suffix = f" (depth {depth})" if depth else ""
        return f"Fetching fragment: {url}{suffix}"

    if name == "include_cached":
        url = data.get("url") or "<unknown>"
        return f"Reusing cached fragment: {url}"

    if name == "include_failed":
        url = data.get("url") or "<unknown>"
        reason = data.get("reason") or "unknown error"
        return f"Include failed for {url}: {reason}"

    if name == "dictionary_stub":
        src = data.get("src") or "<unknown>"
        key = data.get("key") or "<unknown>"
        return f"Dictionary lookup is not implemented; returning default for {src}[{key}]"

    return None


__all__ = [
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "format_event_message",
]
