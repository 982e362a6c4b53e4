"""Wall repair walkthrough: detect, validate, recover, fall back.

One L-shaped wall (3m x 2m, 0.2m thick) with three defects:
- a duplicated vertex at the corner
- a near-zero thickness typed in by mistake
- a recorded self-intersection from an earlier boolean

   (3000,2000)
        |
        |
(0,0) --+ (3000,0)
"""

import logging

from wall_integrity import (
    AutomaticRecoverySystem,
    EdgeCaseDetector,
    ErrorFactory,
    FallbackConfig,
    FallbackMechanisms,
    ValidationPipeline,
)
from wall_integrity.fallback import NotificationLog
from wall_integrity.models import Curve, IntersectionType, QualityMetrics, WallSolid
from wall_integrity.ops import shapes

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

WALL_T = 200.0  # mm

baseline = Curve.from_coords([(0, 0), (3000, 0), (3000, 0), (3000, 2000)])
wall = WallSolid(
    baseline=baseline,
    thickness=0.0,
    solid_geometry=shapes.wall_outline(baseline, WALL_T),
    quality=QualityMetrics(self_intersection_count=1),
)

# --- Detect ---
print("Edge cases:")
for case in EdgeCaseDetector().detect_wall_solid_edge_cases(wall):
    print(f"  [{case.severity.value}] {case.edge_case_type.value}: {case.description}")

# --- Validate (stage recovery on) ---
result = ValidationPipeline().execute_validation(wall, operation="example")
print(f"\nPipeline: {'passed' if result.success else 'failed'}")
for name, stage in result.stage_results.items():
    print(f"  {name}: {'ok' if stage.passed else 'FAIL'} ({len(stage.errors)} errors)")
for action in result.recommended_actions:
    print(f"  → {action}")

# --- Session recovery on whatever the pipeline reported ---
session = AutomaticRecoverySystem().attempt_recovery(wall, result.errors)
print(f"\nRecovery {session.session_id}:")
print(f"  Strategies: {', '.join(session.applied_strategies) or 'none'}")
print(f"  Quality impact: {session.total_quality_impact:.2f}")
print(f"  Needs review: {session.requires_user_intervention}")

# --- Fallback for a junction the primary boolean could not resolve ---
cross = WallSolid(
    baseline=Curve.from_coords([(1500, -1000), (1500, 1000)]),
    thickness=WALL_T,
)
notifications = NotificationLog()
fallback = FallbackMechanisms(FallbackConfig(notification_callback=notifications))
junction = fallback.execute_intersection_fallback(
    [session.current_data, cross],
    IntersectionType.T_JUNCTION,
    ErrorFactory.boolean_error("Primary union failed", "union", 2),
)
print(f"\nJunction: {junction.operation_type} (success={junction.success})")
for warning in junction.warnings:
    print(f"  {warning}")
print(f"  Notifications: {notifications.statistics()}")
