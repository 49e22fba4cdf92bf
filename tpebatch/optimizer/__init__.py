"""Optimizer - batch ask/tell parameter optimization."""

from .engine import OptimizationEngine, OptimizationSummary, create_optimizer
from .executor import ParallelExecutor, TaskResult, WORST_SCORE
from .joint import JointOptimizer
from .tracker import BestRecord, BestTracker

__all__ = [
    'OptimizationEngine',
    'OptimizationSummary',
    'create_optimizer',
    'ParallelExecutor',
    'TaskResult',
    'WORST_SCORE',
    'JointOptimizer',
    'BestRecord',
    'BestTracker',
]
