"""Session-based automatic recovery.

Errors are handled most-severe first. Each recoverable error is mapped
to a named strategy; if that strategy fails the system may try
simplification and finally a full reconstruction. The whole session is
bounded by an attempt count and a cumulative quality budget.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from wall_integrity.config import RecoveryConfig
from wall_integrity.errors import ErrorKind, GeometricError, GeometryOperationError, Severity
from wall_integrity.recovery.session import RecoveryAttemptResult, RecoverySession
from wall_integrity.recovery.strategies import (
    DEFAULT_STRATEGIES,
    LAST_RESORT,
    SIMPLIFICATION,
    STRATEGY_FOR_KIND,
    RecoveryStrategy,
)

logger = logging.getLogger(__name__)

REVIEW_IMPACT = 0.3


@dataclass
class RecoveryRecommendation:
    """A candidate strategy for one error, ranked by confidence."""

    error_kind: ErrorKind
    strategy_name: str
    description: str
    estimated_quality_impact: float
    requires_user_input: bool
    confidence: float


def _priority_order(errors: list[GeometricError]) -> list[GeometricError]:
    # Critical first, then recoverable before non-recoverable; stable otherwise
    return sorted(errors, key=lambda e: (-e.severity.rank, not e.recoverable))


class AutomaticRecoverySystem:
    def __init__(
        self,
        config: RecoveryConfig | None = None,
        strategies: tuple[RecoveryStrategy, ...] | None = None,
    ):
        self.config = config or RecoveryConfig()
        self._strategies = {s.name: s for s in (strategies or DEFAULT_STRATEGIES)}

    def strategy_names(self) -> list[str]:
        return sorted(self._strategies, key=lambda n: self._strategies[n].priority)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def attempt_recovery(
        self,
        entity: Any,
        errors: list[GeometricError],
        session_id: str | None = None,
    ) -> RecoverySession:
        """Apply strategies for ``errors`` and return the finished session."""
        session = RecoverySession.start(
            entity, session_id, preserve_original=self.config.preserve_original_data
        )
        if not self.config.enable_auto_recovery:
            logger.info("Recovery %s: auto-recovery disabled", session.session_id)
            return session.flag_intervention().complete()

        budget = self.config.quality_budget
        for error in _priority_order(errors):
            if not error.is_auto_recoverable:
                logger.debug("Skipping %s error: %s", error.severity.value, error.message)
                session = session.skip(error)
                continue
            if session.attempts_used >= self.config.max_recovery_attempts:
                session = session.flag_intervention()
                break

            session, resolved, review = self._recover_error(session, error)
            if not resolved:
                session = session.flag_intervention()
            if session.total_quality_impact > budget:
                logger.info(
                    "Recovery %s: quality impact %.2f exceeds budget %.2f",
                    session.session_id, session.total_quality_impact, budget,
                )
                session = session.flag_intervention()
                break
            if review and self.config.require_user_confirmation:
                session = session.flag_intervention()
                break

        session = session.complete()
        logger.info(
            "Recovery %s finished: %d attempts, strategies=%s, impact=%.2f, intervention=%s",
            session.session_id, session.attempts_used, list(session.applied_strategies),
            session.total_quality_impact, session.requires_user_intervention,
        )
        return session

    def _strategy_chain(self, kind: ErrorKind) -> list[RecoveryStrategy]:
        names = [STRATEGY_FOR_KIND[kind]]
        if self.config.fallback_to_simplification and SIMPLIFICATION not in names:
            simplification = self._strategies.get(SIMPLIFICATION)
            if simplification is not None and simplification.can_handle(kind):
                names.append(SIMPLIFICATION)
        if LAST_RESORT not in names:
            names.append(LAST_RESORT)
        return [self._strategies[n] for n in names if n in self._strategies]

    def _recover_error(
        self, session: RecoverySession, error: GeometricError
    ) -> tuple[RecoverySession, bool, bool]:
        """Walk the strategy chain for one error.

        Returns (session, resolved, needs_review). An error whose primary
        strategy finds nothing to fix counts as already resolved, but the
        check is still recorded as an attempt.
        """
        for position, strategy in enumerate(self._strategy_chain(error.kind)):
            if session.attempts_used >= self.config.max_recovery_attempts:
                return session, False, False
            attempt = self._execute(strategy, session.current_data, error)
            if attempt is None:
                if position == 0:
                    logger.debug("%s: nothing to fix for %s", strategy.name, error.kind.value)
                    unchanged = self._unchanged(strategy, session.current_data, error)
                    return session.record(unchanged), True, False
                continue
            session = session.record(attempt)
            if attempt.success:
                return session, True, attempt.requires_user_review
        return session, False, False

    def _execute(
        self, strategy: RecoveryStrategy, data: Any, error: GeometricError
    ) -> RecoveryAttemptResult | None:
        start = time.perf_counter()
        try:
            outcome = strategy.apply(data, error)
        except GeometryOperationError as exc:
            # Raised by the shapely layer a strategy builds on
            return self._failed(strategy, data, error, start, exc.error.message)
        except Exception as exc:
            logger.warning("Strategy %s raised", strategy.name, exc_info=True)
            return self._failed(strategy, data, error, start, f"{type(exc).__name__}: {exc}")
        if outcome is None:
            return None
        if not outcome.success:
            return self._failed(strategy, data, error, start, "; ".join(outcome.warnings))
        return RecoveryAttemptResult(
            success=True,
            recovered_data=outcome.recovered_data,
            strategy_used=strategy.name,
            quality_impact=outcome.quality_impact,
            processing_time=(time.perf_counter() - start) * 1000,
            warnings=tuple(outcome.warnings),
            requires_user_review=outcome.quality_impact > REVIEW_IMPACT,
            error_kind=error.kind,
        )

    @staticmethod
    def _unchanged(strategy: RecoveryStrategy, data: Any, error: GeometricError) -> RecoveryAttemptResult:
        return RecoveryAttemptResult(
            success=True,
            recovered_data=data,
            strategy_used=strategy.name,
            warnings=(f"{strategy.name} found nothing to repair",),
            error_kind=error.kind,
            modified=False,
        )

    @staticmethod
    def _failed(
        strategy: RecoveryStrategy, data: Any, error: GeometricError, start: float, reason: str
    ) -> RecoveryAttemptResult:
        return RecoveryAttemptResult(
            success=False,
            recovered_data=data,
            strategy_used=strategy.name,
            processing_time=(time.perf_counter() - start) * 1000,
            warnings=(f"{strategy.name} failed: {reason}",),
            error_kind=error.kind,
        )

    # ------------------------------------------------------------------
    # Manual use
    # ------------------------------------------------------------------

    def apply_strategy(self, entity: Any, error: GeometricError, strategy_name: str) -> RecoveryAttemptResult:
        """Run one named strategy outside a session."""
        strategy = self._strategies.get(strategy_name)
        if strategy is None:
            return RecoveryAttemptResult(
                success=False,
                recovered_data=entity,
                strategy_used=strategy_name,
                warnings=(f"Unknown recovery strategy: {strategy_name}",),
                error_kind=error.kind,
            )
        attempt = self._execute(strategy, entity, error)
        if attempt is None:
            return self._unchanged(strategy, entity, error)
        return attempt

    def get_recovery_recommendations(
        self, entity: Any, errors: list[GeometricError]
    ) -> list[RecoveryRecommendation]:
        """Candidate strategies per error, most confident first. Read-only."""
        recommendations: list[RecoveryRecommendation] = []
        for error in errors:
            for strategy in sorted(self._strategies.values(), key=lambda s: s.priority):
                if not strategy.can_handle(error.kind):
                    continue
                confidence = 0.5
                if self._would_apply(strategy, entity, error):
                    confidence += 0.3
                if error.recoverable:
                    confidence += 0.2
                confidence += (10 - strategy.priority) * 0.01
                recommendations.append(
                    RecoveryRecommendation(
                        error_kind=error.kind,
                        strategy_name=strategy.name,
                        description=strategy.description,
                        estimated_quality_impact=strategy.estimated_impact,
                        requires_user_input=strategy.requires_user_input,
                        confidence=min(1.0, confidence),
                    )
                )
        return sorted(recommendations, key=lambda r: r.confidence, reverse=True)

    @staticmethod
    def _would_apply(strategy: RecoveryStrategy, entity: Any, error: GeometricError) -> bool:
        if error.severity == Severity.CRITICAL:
            return False
        try:
            outcome = strategy.apply(entity, error)
        except Exception:
            logger.debug("Preview of %s failed", strategy.name, exc_info=True)
            return False
        return outcome is not None and outcome.success
