"""Wall integrity CLI.

Usage:
    python -m wall_integrity <command> <wall.json> [options]

Every command reads one wall solid as JSON and prints a JSON document.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from wall_integrity import __version__
from wall_integrity.config import (
    EdgeCaseHandlingConfig,
    PipelineConfig,
    RecoveryConfig,
    ReportingLevel,
)
from wall_integrity.models.wall import WallSolid
from wall_integrity.recovery import AutomaticRecoverySystem
from wall_integrity.validators import (
    EdgeCaseDetector,
    EdgeCaseHandler,
    ValidationPhase,
    ValidationPipeline,
)

app = typer.Typer(
    name="wall_integrity",
    help="Wall integrity: edge-case detection, validation and recovery for wall solids.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _output(data: dict) -> None:
    """Print JSON output to stdout."""
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _fail(message: str) -> None:
    _output({"ok": False, "error": message})
    raise typer.Exit(1)


def _load_wall(path: Path) -> WallSolid:
    if not path.exists():
        _fail(f"File not found: {path}")
    try:
        return WallSolid.model_validate_json(path.read_text())
    except ValidationError as exc:
        _fail(f"Invalid wall solid: {exc.error_count()} validation errors: {exc.errors()[0]['msg']}")


def _save_wall(wall: WallSolid, path: Path) -> None:
    path.write_text(wall.model_dump_json(indent=2))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def detect(wall_file: Path = typer.Argument(..., help="Wall solid JSON file")):
    """List edge cases in the wall's baseline, offsets and thickness."""
    wall = _load_wall(wall_file)
    results = EdgeCaseDetector().detect_wall_solid_edge_cases(wall)
    _output({
        "ok": True,
        "wall": wall.summary(),
        "edge_cases": [r.to_dict() for r in results],
        "auto_fixable": sum(1 for r in results if r.can_auto_fix),
    })


@app.command()
def heal(
    wall_file: Path = typer.Argument(..., help="Wall solid JSON file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the healed wall here"),
    aggressive: bool = typer.Option(False, "--aggressive", help="Also remove spike vertices"),
):
    """Auto-fix fixable edge cases."""
    wall = _load_wall(wall_file)
    handler = EdgeCaseHandler(config=EdgeCaseHandlingConfig(aggressive_healing=aggressive))
    result = handler.handle_wall_solid_edge_cases(wall)
    if output:
        _save_wall(result.wall, output)
    _output({
        "ok": True,
        "original_issues": result.original_issue_count,
        "resolved_issues": result.resolved_issue_count,
        "remaining": [r.to_dict() for r in result.remaining_issues],
        "applied_fixes": result.applied_fixes,
        "warnings": result.warnings,
        "saved_to": str(output) if output else None,
    })


@app.command()
def validate(
    wall_file: Path = typer.Argument(..., help="Wall solid JSON file"),
    phase: ValidationPhase = typer.Option(ValidationPhase.POST, "--phase", "-p", help="Validation phase"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop at the first unresolved stage"),
    no_recovery: bool = typer.Option(False, "--no-recovery", help="Disable stage recovery"),
    reporting_level: ReportingLevel = typer.Option(
        ReportingLevel.DETAILED, "--reporting-level", "-r", help="Detail of recommended actions"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the validated wall here"),
):
    """Run the validation pipeline."""
    wall = _load_wall(wall_file)
    config = PipelineConfig(
        fail_fast=fail_fast,
        enable_auto_recovery=not no_recovery,
        reporting_level=reporting_level,
    )
    result = ValidationPipeline(config).execute_validation(wall, operation="cli", phase=phase)
    if output:
        _save_wall(result.data, output)
    _output({"ok": True, "validation": result.to_dict()})


@app.command()
def recover(
    wall_file: Path = typer.Argument(..., help="Wall solid JSON file"),
    max_attempts: int = typer.Option(5, "--max-attempts", "-n", help="Strategy applications allowed"),
    quality_threshold: float = typer.Option(0.7, "--quality-threshold", help="Minimum quality to keep"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the recovered wall here"),
):
    """Collect pipeline errors and run an automatic recovery session on them."""
    wall = _load_wall(wall_file)
    pipeline = ValidationPipeline(PipelineConfig(enable_auto_recovery=False))
    errors = pipeline.execute_validation(wall, operation="cli").errors
    try:
        config = RecoveryConfig(max_recovery_attempts=max_attempts, quality_threshold=quality_threshold)
    except ValidationError as exc:
        _fail(f"Invalid recovery options: {exc.errors()[0]['msg']}")
    system = AutomaticRecoverySystem(config)
    session = system.attempt_recovery(wall, errors)
    if output:
        _save_wall(session.current_data, output)
    _output({
        "ok": True,
        "errors": [e.to_dict() for e in errors],
        "recommendations": [
            {
                "error_kind": r.error_kind.value,
                "strategy": r.strategy_name,
                "confidence": round(r.confidence, 3),
                "estimated_quality_impact": r.estimated_quality_impact,
                "requires_user_input": r.requires_user_input,
            }
            for r in system.get_recovery_recommendations(wall, errors)
        ],
        "session": session.to_dict(),
        "saved_to": str(output) if output else None,
    })


@app.command()
def version():
    """Print the package version."""
    _output({"ok": True, "version": __version__})


if __name__ == "__main__":
    app()
