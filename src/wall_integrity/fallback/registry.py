"""Fallback strategy interface and the thread-safe registry.

The registry is a flat list kept sorted by priority (highest first).
``add`` and ``remove`` are the only mutators; readers work on a tuple
snapshot, so a strategy list never changes under an executing search.
"""

from __future__ import annotations

import abc
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from wall_integrity.errors import GeometricError, GeometryOperationError


class FallbackOperation(str, Enum):
    OFFSET = "offset"
    BOOLEAN = "boolean"
    INTERSECTION = "intersection"


@dataclass
class FallbackResult:
    success: bool
    result: Any
    method: str
    quality_impact: float
    warnings: list[str] = field(default_factory=list)
    limitations: list[str] = field(default_factory=list)
    processing_time: float = 0.0
    error: Optional[GeometricError] = None


class FallbackStrategy(abc.ABC):
    """A ranked substitute for a failed geometric operation.

    ``quality_impact`` is the share of quality a result keeps: 1.0 is
    lossless, 0.0 worthless.
    """

    name: str = ""
    operation: FallbackOperation
    priority: int = 0
    quality_impact: float = 0.0

    def can_handle(self, operation: FallbackOperation, error: GeometricError) -> bool:
        return operation == self.operation

    def execute(self, operation: FallbackOperation, request: Any, error: GeometricError) -> FallbackResult:
        """Run the strategy and time it.

        A ``GeometryOperationError`` from the shapely layer becomes a failed
        result; anything else propagates to the caller.
        """
        start = time.perf_counter()
        try:
            result = self.run(request, error)
        except GeometryOperationError as exc:
            result = self.failed(exc.error)
        result.processing_time = (time.perf_counter() - start) * 1000
        return result

    @abc.abstractmethod
    def run(self, request: Any, error: GeometricError) -> FallbackResult:
        """Produce the substitute, via ``succeeded`` or ``failed``."""

    def succeeded(self, result: Any, warnings: list[str] | None = None) -> FallbackResult:
        return FallbackResult(
            success=True,
            result=result,
            method=self.name,
            quality_impact=self.quality_impact,
            warnings=warnings or [],
            limitations=self.limitations(),
        )

    def failed(self, error: GeometricError) -> FallbackResult:
        return FallbackResult(
            success=False,
            result=None,
            method=self.name,
            quality_impact=0.0,
            warnings=[error.message],
            error=error,
        )

    def limitations(self) -> list[str]:
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


class FallbackRegistry:
    def __init__(self, strategies: Iterable[FallbackStrategy] = ()):
        self._lock = threading.Lock()
        self._strategies: tuple[FallbackStrategy, ...] = ()
        for strategy in strategies:
            self.add(strategy)

    def add(self, strategy: FallbackStrategy) -> None:
        """Register a strategy; one with the same name is replaced."""
        with self._lock:
            kept = [s for s in self._strategies if s.name != strategy.name]
            kept.append(strategy)
            self._strategies = tuple(sorted(kept, key=lambda s: s.priority, reverse=True))

    def remove(self, name: str) -> bool:
        with self._lock:
            kept = tuple(s for s in self._strategies if s.name != name)
            removed = len(kept) != len(self._strategies)
            self._strategies = kept
            return removed

    def snapshot(self) -> tuple[FallbackStrategy, ...]:
        with self._lock:
            return self._strategies

    def applicable(self, operation: FallbackOperation, error: GeometricError) -> list[FallbackStrategy]:
        """Strategies accepting (operation, error), highest priority first."""
        return [s for s in self.snapshot() if s.can_handle(operation, error)]

    def names(self, operation: FallbackOperation | None = None) -> list[str]:
        return [
            s.name for s in self.snapshot()
            if operation is None or s.operation == operation
        ]

    def __len__(self) -> int:
        return len(self.snapshot())
