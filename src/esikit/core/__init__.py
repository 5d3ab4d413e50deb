"""Core building blocks of the ESI interpreter."""

from __future__ import annotations

from .attempts import AttemptFailureDetector, MarkerFailureDetector, StructuredFailureDetector
from .config import CacheConfig, CapabilitySet, DialectProfile, ProcessorConfig
from .context import ProcessingContext, RenderResult, RequestContext, RequestScope
from .exceptions import (
    ConfigurationError,
    DepthExceededError,
    EsiError,
    FetchError,
    MarkupParseError,
)
from .fetch import FragmentCache, FragmentFetcher
from .rules import EsiPhase, handles
from .stats import ProcessingStats, StatsSnapshot
from .variables import VariableResolver, is_truthy


__all__ = [
    "AttemptFailureDetector",
    "CacheConfig",
    "CapabilitySet",
    "ConfigurationError",
    "DepthExceededError",
    "DialectProfile",
    "EsiError",
    "EsiPhase",
    "FetchError",
    "FragmentCache",
    "FragmentFetcher",
    "MarkerFailureDetector",
    "MarkupParseError",
    "ProcessingContext",
    "ProcessingStats",
    "ProcessorConfig",
    "RenderResult",
    "RequestContext",
    "RequestScope",
    "StatsSnapshot",
    "StructuredFailureDetector",
    "VariableResolver",
    "handles",
    "is_truthy",
]
