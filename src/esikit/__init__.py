"""Primary public API for esikit."""

from __future__ import annotations

from esikit.core.attempts import (
    AttemptFailureDetector,
    MarkerFailureDetector,
    StructuredFailureDetector,
)
from esikit.core.config import CacheConfig, CapabilitySet, DialectProfile, ProcessorConfig
from esikit.core.context import RequestContext
from esikit.core.diagnostics import DiagnosticEmitter, LoggingEmitter, NullEmitter
from esikit.core.exceptions import (
    ConfigurationError,
    DepthExceededError,
    EsiError,
    FetchError,
    MarkupParseError,
)
from esikit.core.rules import EsiPhase, handles
from esikit.core.stats import StatsSnapshot
from esikit.processor import EsiProcessor
from esikit.version import get_version


__version__ = get_version()


__all__ = [
    "AttemptFailureDetector",
    "CacheConfig",
    "CapabilitySet",
    "ConfigurationError",
    "DepthExceededError",
    "DiagnosticEmitter",
    "DialectProfile",
    "EsiError",
    "EsiPhase",
    "EsiProcessor",
    "FetchError",
    "LoggingEmitter",
    "MarkerFailureDetector",
    "MarkupParseError",
    "NullEmitter",
    "ProcessorConfig",
    "RequestContext",
    "StatsSnapshot",
    "StructuredFailureDetector",
    "__version__",
    "get_version",
    "handles",
]
