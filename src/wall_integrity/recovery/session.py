"""Immutable recovery session values.

A session is never edited in place. Each step returns a new session via
``dataclasses.replace``, so a caller holding an earlier snapshot keeps
seeing exactly what it saw.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from wall_integrity.errors import ErrorKind, GeometricError


@dataclass(frozen=True)
class RecoveryAttemptResult:
    """One strategy application.

    ``modified`` is false when the strategy found nothing to repair; such
    an attempt still counts toward the session's attempt ceiling.
    """

    success: bool
    recovered_data: Any
    strategy_used: str
    quality_impact: float = 0.0
    processing_time: float = 0.0
    warnings: tuple[str, ...] = ()
    requires_user_review: bool = False
    error_kind: Optional[ErrorKind] = None
    modified: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "strategy": self.strategy_used,
            "quality_impact": self.quality_impact,
            "processing_time": self.processing_time,
            "warnings": list(self.warnings),
            "requires_user_review": self.requires_user_review,
            "modified": self.modified,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass(frozen=True)
class RecoverySession:
    """State of one recovery run over a list of errors.

    ``total_quality_impact`` always equals the summed impact of the
    successful attempts in ``recovery_history``.
    """

    session_id: str
    current_data: Any
    original_data: Any = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    applied_strategies: tuple[str, ...] = ()
    recovery_history: tuple[RecoveryAttemptResult, ...] = ()
    total_quality_impact: float = 0.0
    is_complete: bool = False
    requires_user_intervention: bool = False
    skipped_errors: tuple[GeometricError, ...] = ()

    @classmethod
    def start(
        cls, entity: Any, session_id: str | None = None, preserve_original: bool = True
    ) -> RecoverySession:
        return cls(
            session_id=session_id or f"recovery_{uuid.uuid4().hex[:12]}",
            current_data=entity,
            original_data=copy.deepcopy(entity) if preserve_original else None,
        )

    @property
    def attempts_used(self) -> int:
        return len(self.recovery_history)

    def record(self, attempt: RecoveryAttemptResult) -> RecoverySession:
        """New session with ``attempt`` appended; successes update the data."""
        if not (attempt.success and attempt.modified):
            return replace(self, recovery_history=self.recovery_history + (attempt,))
        return replace(
            self,
            current_data=attempt.recovered_data,
            applied_strategies=self.applied_strategies + (attempt.strategy_used,),
            recovery_history=self.recovery_history + (attempt,),
            total_quality_impact=self.total_quality_impact + attempt.quality_impact,
        )

    def skip(self, error: GeometricError) -> RecoverySession:
        return replace(
            self,
            skipped_errors=self.skipped_errors + (error,),
            requires_user_intervention=True,
        )

    def flag_intervention(self) -> RecoverySession:
        return replace(self, requires_user_intervention=True)

    def complete(self) -> RecoverySession:
        return replace(self, is_complete=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "applied_strategies": list(self.applied_strategies),
            "history": [a.to_dict() for a in self.recovery_history],
            "total_quality_impact": self.total_quality_impact,
            "is_complete": self.is_complete,
            "requires_user_intervention": self.requires_user_intervention,
            "skipped_errors": [e.to_dict() for e in self.skipped_errors],
        }
