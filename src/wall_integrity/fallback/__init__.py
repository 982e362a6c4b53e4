"""Fallbacks for failed offset, boolean and intersection operations."""

from wall_integrity.fallback.mechanisms import BooleanResult, FallbackMechanisms, OffsetResult
from wall_integrity.fallback.notifications import FallbackNotification, NotificationLog
from wall_integrity.fallback.registry import (
    FallbackOperation,
    FallbackRegistry,
    FallbackResult,
    FallbackStrategy,
)
from wall_integrity.fallback.strategies import default_strategies

__all__ = [
    "BooleanResult",
    "FallbackMechanisms",
    "FallbackNotification",
    "FallbackOperation",
    "FallbackRegistry",
    "FallbackResult",
    "FallbackStrategy",
    "NotificationLog",
    "OffsetResult",
    "default_strategies",
]
