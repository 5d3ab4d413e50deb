"""High-level ESI processor wiring the element engine, fetcher and resolver."""

from __future__ import annotations

from collections.abc import Callable
import time
from typing import Any

from esikit.core.attempts import AttemptFailureDetector, MarkerFailureDetector
from esikit.core.config import CapabilitySet, ProcessorConfig
from esikit.core.context import ProcessingContext, RenderResult, RequestContext, RequestScope
from esikit.core.diagnostics import DiagnosticEmitter, LoggingEmitter
from esikit.core.exceptions import DepthExceededError, EsiError
from esikit.core.fetch import FragmentCache, FragmentFetcher, HttpClient
from esikit.core.markup import (
    ensure_text,
    normalize_comment_blocks,
    parse_markup,
    serialize,
)
from esikit.core.rules import ElementEngine
from esikit.core.stats import ProcessingStats, StatsSnapshot
from esikit.core.variables import VariableResolver


class EsiProcessor:
    """Interpret ESI markup according to a dialect profile.

    One processor is meant to be shared: the fragment cache and the counters
    are guarded by their own locks, while everything that belongs to a single
    request lives in the :class:`RequestContext` handed to :meth:`process`.
    """

    def __init__(
        self,
        config: ProcessorConfig | None = None,
        *,
        session: HttpClient | None = None,
        emitter: DiagnosticEmitter | None = None,
        clock: Callable[[], float] = time.monotonic,
        failure_detector: AttemptFailureDetector | None = None,
    ) -> None:
        self.config = config or ProcessorConfig()
        self._capabilities = self.config.capabilities
        self.emitter = emitter or LoggingEmitter(debug_enabled=self.config.debug)
        self._stats = ProcessingStats()

        cache = None
        if self.config.cache.enabled:
            cache = FragmentCache(self.config.cache.ttl, clock=clock)
        self.fetcher = FragmentFetcher(
            session=session,
            timeout=self.config.fetch_timeout,
            cache=cache,
            stats=self._stats,
            base_url=self.config.base_url,
        )
        self.resolver = VariableResolver(self._capabilities, emitter=self.emitter)
        self.failure_detector = failure_detector or MarkerFailureDetector()

        self.engine = ElementEngine()
        self._register_builtin_handlers()

    def _register_builtin_handlers(self) -> None:
        """Register the handlers for every ESI element kind."""
        from .handlers import (
            basic as basic_handlers,
            conditionals as conditional_handlers,
            extensions as extension_handlers,
            includes as include_handlers,
            recovery as recovery_handlers,
        )

        self.engine.collect_from(extension_handlers)
        self.engine.collect_from(include_handlers)
        self.engine.collect_from(conditional_handlers)
        self.engine.collect_from(recovery_handlers)
        self.engine.collect_from(basic_handlers)

    def register(self, handler: Any) -> None:
        """Register additional handlers on demand.

        Arguments can be callables decorated with :func:`handles` or modules
        exposing decorated attributes.
        """
        if getattr(handler, "__esi_rule__", None) is not None:
            self.engine.register(handler)
            return
        self.engine.collect_from(handler)

    def process(self, markup: str | bytes, context: RequestContext | None = None) -> str:
        """Process a document and return the rewritten markup.

        Raises :class:`DepthExceededError` and :class:`MarkupParseError`; fetch
        failures are handled per element and never propagate.
        """
        request = context or RequestContext()
        self._stats.record_request()
        self.emitter.debug("Processing ESI document (profile %s)", self.config.profile.value)
        started = time.perf_counter()
        try:
            result = self._render(markup, request, RequestScope())
            text = result.text
            if self._capabilities.extensions:
                text = self.resolver.expand(text, request)
            return text
        except EsiError:
            self._stats.record_error()
            raise
        finally:
            self._stats.record_duration((time.perf_counter() - started) * 1000.0)

    def render_nested(
        self, markup: str, request: RequestContext, scope: RequestScope
    ) -> RenderResult:
        """Run the pipeline on nested markup belonging to an ongoing call."""
        return self._render(markup, request, scope)

    def _render(
        self, markup: str | bytes, request: RequestContext, scope: RequestScope
    ) -> RenderResult:
        if request.depth > self.config.max_depth:
            raise DepthExceededError(request.depth, self.config.max_depth)

        text = ensure_text(markup)
        if self._capabilities.comment_blocks:
            text = normalize_comment_blocks(text)

        soup = parse_markup(text)
        result = RenderResult()
        context = ProcessingContext(
            processor=self,
            request=request,
            scope=scope,
            result=result,
        )
        self.engine.run(soup, context)
        result.text = serialize(soup)
        return result

    def capabilities(self) -> CapabilitySet:
        """Return the capability set derived from the configured profile."""
        return self._capabilities

    def stats(self) -> StatsSnapshot:
        """Return a consistent snapshot of the processing counters."""
        return self._stats.snapshot()

    def clear_cache(self) -> None:
        if self.fetcher.cache is not None:
            self.fetcher.cache.clear()

    def cache_size(self) -> int:
        cache = self.fetcher.cache
        return len(cache) if cache is not None else 0

    def expand_variables(self, text: str, context: RequestContext | None = None) -> str:
        """Expand ``$(...)`` references outside of a document."""
        return self.resolver.expand(text, context or RequestContext())

    def evaluate(self, expression: str, context: RequestContext | None = None) -> str:
        """Evaluate a test expression outside of a document."""
        return self.resolver.evaluate(expression, context or RequestContext())

    def describe_rules(self) -> list[dict[str, object]]:
        """Return detailed metadata about registered rules."""
        return self.engine.registry.describe()

    def close(self) -> None:
        """Release the HTTP session owned by the fetcher."""
        self.fetcher.close()


__all__ = ["EsiProcessor"]
