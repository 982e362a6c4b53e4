"""User notifications emitted when a fallback is used or none works."""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from wall_integrity.models.wall import IntersectionType

logger = logging.getLogger(__name__)

NONE_SUCCESSFUL = "none_successful"


@dataclass
class FallbackNotification:
    operation: str
    original_error: str
    fallback_method: str
    quality_impact: float
    user_guidance: list[str] = field(default_factory=list)
    can_retry: bool = True
    alternative_approaches: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def level(self) -> str:
        """info / warning / error by how much quality survived."""
        if self.fallback_method == NONE_SUCCESSFUL or self.quality_impact < 0.5:
            return "error"
        if self.quality_impact < 0.8:
            return "warning"
        return "info"

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "original_error": self.original_error,
            "fallback_method": self.fallback_method,
            "quality_impact": self.quality_impact,
            "user_guidance": list(self.user_guidance),
            "can_retry": self.can_retry,
            "alternative_approaches": list(self.alternative_approaches),
            "level": self.level,
        }


def log_notification(notification: FallbackNotification) -> None:
    """Default sink: one warning line per notification."""
    logger.warning(
        "Fallback for %s: %s (quality %.0f%%) after error: %s",
        notification.operation,
        notification.fallback_method,
        notification.quality_impact * 100,
        notification.original_error,
    )


class NotificationLog:
    """Callable sink that keeps the most recent notifications.

    Pass an instance as ``FallbackConfig.notification_callback`` to
    inspect what users would have been told.
    """

    def __init__(self, max_entries: int = 100, forward_to_logger: bool = False):
        self._entries: deque[FallbackNotification] = deque(maxlen=max_entries)
        self.forward_to_logger = forward_to_logger

    def __call__(self, notification: FallbackNotification) -> None:
        self._entries.append(notification)
        if self.forward_to_logger:
            log_notification(notification)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[FallbackNotification]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def statistics(self) -> dict[str, Any]:
        entries = self.entries
        if not entries:
            return {"total": 0, "by_method": {}, "by_level": {}, "average_quality": None}
        return {
            "total": len(entries),
            "by_method": dict(Counter(n.fallback_method for n in entries)),
            "by_level": dict(Counter(n.level for n in entries)),
            "average_quality": sum(n.quality_impact for n in entries) / len(entries),
        }


# ---------------------------------------------------------------------------
# Guidance text
# ---------------------------------------------------------------------------

def offset_guidance(method: str | None) -> list[str]:
    if method is None:
        return [
            "All automatic offset methods failed",
            "Check the baseline for self-intersections or very short segments",
            "Try a smaller offset distance or a different join type",
        ]
    return [
        f"Offset completed with {method.replace('_', ' ')}",
        "Verify that the wall faces follow the intended baseline",
        "Sharp corners may be beveled or slightly simplified",
    ]


def boolean_guidance(method: str | None) -> list[str]:
    if method is None:
        return [
            "All automatic boolean methods failed",
            "Check the input walls for overlaps or tiny gaps",
            "Simplify the geometry before combining walls",
        ]
    return [
        f"Boolean completed with {method.replace('_', ' ')}",
        "Small features near junctions may have been merged or dropped",
        "Inspect the combined solid before manufacturing output",
    ]


_JUNCTION_GUIDANCE = {
    IntersectionType.T_JUNCTION: "Check that the abutting wall meets the through wall cleanly",
    IntersectionType.L_JUNCTION: "Check the corner for overlaps or a missing miter",
    IntersectionType.CROSS_JUNCTION: "Check all four arms of the crossing for gaps",
    IntersectionType.PARALLEL_OVERLAP: "Check whether the overlapping walls should be merged",
}


def intersection_guidance(method: str | None, intersection_type: IntersectionType) -> list[str]:
    junction = _JUNCTION_GUIDANCE[intersection_type]
    if method is None:
        return [
            f"Automatic {intersection_type.value.replace('_', ' ')} resolution failed",
            junction,
            "Resolve the junction manually",
        ]
    return [
        f"Junction resolved with {method.replace('_', ' ')}",
        junction,
    ]


ALTERNATIVE_APPROACHES = {
    "offset": [
        "Use bevel or round joins instead of miter",
        "Split the baseline into simpler segments",
        "Offset each side separately and join manually",
    ],
    "boolean": [
        "Combine walls in smaller groups",
        "Simplify wall outlines before combining",
        "Draw the combined outline manually",
    ],
    "intersection": [
        "Adjust wall endpoints to meet exactly",
        "Trim overlapping walls before joining",
        "Model the junction as a separate element",
    ],
}
