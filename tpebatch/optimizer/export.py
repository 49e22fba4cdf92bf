"""
Result export for optimization runs.

Renders an OptimizationSummary as a human-readable report or a
JSON-friendly dictionary.
"""

import json
import math
from typing import Any, Dict

from .engine import OptimizationSummary


def _json_float(value):
    if value is None or math.isfinite(value):
        return value
    return str(value)


def summary_to_dict(summary: OptimizationSummary) -> Dict[str, Any]:
    """Convert a summary to a JSON-serializable dictionary."""
    return {
        'status': summary.status,
        'trials': summary.trials_completed,
        'batches': summary.batches,
        'direction': summary.direction,
        'best_params': summary.best_params.as_dict(),
        'best_score': _json_float(summary.best_score),
        'best_value': _json_float(summary.best_objective),
        'rejected_tells': summary.rejected_tells,
        'failed_evaluations': summary.failed_evaluations,
        'elapsed_ms': int(summary.elapsed_seconds * 1000),
    }


def export_summary_json(summary: OptimizationSummary, indent: int = 2) -> str:
    """Render a summary as a JSON string."""
    return json.dumps(summary_to_dict(summary), indent=indent)


def format_summary(summary: OptimizationSummary) -> str:
    """
    Render the run summary.

    Example:
        trials      = 1000
        best_params = ParameterVector(a=0.97, b=0.03, c=0.99, d=0.98)
        best_value  = -32.9
        elapsed_ms  = 1093
    """
    lines = [
        f"trials      = {summary.trials_completed}",
        f"best_params = {summary.best_params!r}",
        f"best_value  = {summary.best_score}",
        f"elapsed_ms  = {int(summary.elapsed_seconds * 1000)}",
    ]
    if summary.rejected_tells or summary.failed_evaluations:
        lines.append(f"rejected    = {summary.rejected_tells}")
        lines.append(f"failed      = {summary.failed_evaluations}")
    return "\n".join(lines)
