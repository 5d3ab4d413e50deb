"""Request and processing context primitives shared across the pipeline."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from requests.structures import CaseInsensitiveDict


if TYPE_CHECKING:  # pragma: no cover - typing only
    from bs4.element import Tag

    from esikit.processor import EsiProcessor

    from .config import CapabilitySet, ProcessorConfig
    from .rules import EsiPhase


def parse_cookie_header(header: str | None) -> dict[str, str]:
    """Split a ``Cookie`` header into a name/value mapping."""
    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for pair in header.split(";"):
        name, sep, value = pair.strip().partition("=")
        if sep and name:
            cookies[name] = value
    return cookies


@dataclass
class RequestContext:
    """Caller-owned state describing one request.

    ``variables`` holds the values set by ``esi:assign``. It belongs to the
    request, so separate calls with separate contexts never observe each
    other's assignments.
    """

    base_url: str | None = None
    headers: MutableMapping[str, str] = field(default_factory=CaseInsensitiveDict)
    cookies: dict[str, str] = field(default_factory=dict)
    depth: int = 0
    variables: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})
        if not self.cookies:
            self.cookies = parse_cookie_header(self.headers.get("Cookie"))

    @classmethod
    def from_request(
        cls,
        *,
        method: str = "GET",
        uri: str = "/",
        query_string: str = "",
        headers: Mapping[str, str] | None = None,
        base_url: str | None = None,
    ) -> RequestContext:
        """Build a context the way the HTTP front end populates it."""
        merged: CaseInsensitiveDict[str] = CaseInsensitiveDict(headers or {})
        merged["Method"] = method.upper()
        merged["Request-URI"] = uri
        if query_string:
            merged["Query-String"] = query_string
        if base_url is None and merged.get("Host"):
            base_url = f"http://{merged['Host']}"
        return cls(base_url=base_url, headers=merged)

    def header(self, name: str) -> str:
        """Return a header value or an empty string."""
        return self.headers.get(name) or ""

    def child(self) -> RequestContext:
        """Return the context for one level of nested processing."""
        return replace(self, depth=self.depth + 1)


@dataclass
class RequestScope:
    """Mutable bookkeeping shared by every nested render of one top-level call."""

    include_count: int = 0
    inline_fragments: dict[str, str] = field(default_factory=dict)

    def claim_include(self, limit: int) -> bool:
        """Count an include element and report whether it is within the budget."""
        self.include_count += 1
        return self.include_count <= limit


@dataclass
class RenderResult:
    """Output of one pass of the pipeline over a document."""

    text: str = ""
    fetch_failures: int = 0


@dataclass
class ProcessingContext:
    """Shared context passed to every handler while rewriting one document."""

    processor: EsiProcessor
    request: RequestContext
    scope: RequestScope
    result: RenderResult
    phase: EsiPhase | None = None

    _processed: dict[str, dict[int, Any]] = field(default_factory=dict, init=False)

    @property
    def config(self) -> ProcessorConfig:
        return self.processor.config

    @property
    def capabilities(self) -> CapabilitySet:
        return self.processor.capabilities()

    @property
    def debug(self) -> bool:
        return self.processor.config.debug

    def enter_phase(self, phase: EsiPhase) -> None:
        """Mark the current phase."""
        self.phase = phase

    def mark_processed(self, node: Tag, rule: str) -> None:
        """Flag a node as already handled by the named rule."""
        # Keep the node alive so its id() cannot be recycled mid-run.
        self._processed.setdefault(rule, {})[id(node)] = node

    def is_processed(self, node: Tag, rule: str) -> bool:
        """Check whether the named rule already handled a node."""
        return id(node) in self._processed.get(rule, {})

    def log(self, message: str, *args: Any) -> None:
        """Emit a debug message when the processor runs in debug mode."""
        if self.debug:
            self.processor.emitter.debug(message, *args)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        """Forward a structured diagnostic event when debugging."""
        if self.debug:
            self.processor.emitter.event(name, payload)

    def expand(self, text: str) -> str:
        """Expand ``$(...)`` references against the current request."""
        return self.processor.resolver.expand(text, self.request)

    def evaluate(self, expression: str) -> str:
        """Evaluate a test expression against the current request."""
        return self.processor.resolver.evaluate(expression, self.request)

    def render(self, markup: str, request: RequestContext | None = None) -> RenderResult:
        """Run the whole pipeline on nested markup within the same top-level call."""
        return self.processor.render_nested(markup, request or self.request, self.scope)


__all__ = [
    "ProcessingContext",
    "RenderResult",
    "RequestContext",
    "RequestScope",
    "parse_cookie_header",
]
