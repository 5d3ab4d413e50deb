"""Failure detection for ``esi:try`` attempt branches.

The try handler only asks whether an attempt failed. The default answer comes
from scanning the rendered attempt for error markers, which misreads a
fragment that legitimately contains one of those phrases.
:class:`StructuredFailureDetector` answers from the fetch failures counted
while rendering instead, and can be swapped in through the processor.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .context import RenderResult


ERROR_MARKERS: tuple[str, ...] = (
    "ESI include error",
    "failed to fetch",
    "HTTP 4",
    "HTTP 5",
)


@runtime_checkable
class AttemptFailureDetector(Protocol):
    def failed(self, result: RenderResult) -> bool: ...


class MarkerFailureDetector:
    """Flag an attempt whose output contains a known error marker."""

    def __init__(self, markers: tuple[str, ...] = ERROR_MARKERS) -> None:
        self.markers = markers

    def failed(self, result: RenderResult) -> bool:
        return any(marker in result.text for marker in self.markers)


class StructuredFailureDetector:
    """Flag an attempt in which at least one include could not be recovered."""

    def failed(self, result: RenderResult) -> bool:
        return result.fetch_failures > 0


__all__ = [
    "ERROR_MARKERS",
    "AttemptFailureDetector",
    "MarkerFailureDetector",
    "StructuredFailureDetector",
]
