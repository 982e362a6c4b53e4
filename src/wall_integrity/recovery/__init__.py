"""Automatic recovery sessions and named repair strategies."""

from wall_integrity.recovery.automatic import AutomaticRecoverySystem, RecoveryRecommendation
from wall_integrity.recovery.session import RecoveryAttemptResult, RecoverySession
from wall_integrity.recovery.strategies import (
    DEFAULT_STRATEGIES,
    STRATEGY_FOR_KIND,
    RecoveryStrategy,
    StrategyOutcome,
)

__all__ = [
    "AutomaticRecoverySystem",
    "DEFAULT_STRATEGIES",
    "RecoveryAttemptResult",
    "RecoveryRecommendation",
    "RecoverySession",
    "RecoveryStrategy",
    "STRATEGY_FOR_KIND",
    "StrategyOutcome",
]
