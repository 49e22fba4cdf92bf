"""Per-dimension optimization algorithms and shared types."""

from .base import (
    AskExhaustedError,
    Bound,
    DimensionOptimizer,
    ExhaustedError,
    InvalidBoundError,
    ModelRejectedError,
    OptimizerError,
    OutOfBoundsError,
    ParameterVector,
    TellRejectedError,
)
from .parzen import ParzenDimensionOptimizer, ParzenEstimator
from .bayesian_optuna import OptunaDimensionOptimizer

__all__ = [
    'AskExhaustedError',
    'Bound',
    'DimensionOptimizer',
    'ExhaustedError',
    'InvalidBoundError',
    'ModelRejectedError',
    'OptimizerError',
    'OutOfBoundsError',
    'ParameterVector',
    'TellRejectedError',
    'ParzenDimensionOptimizer',
    'ParzenEstimator',
    'OptunaDimensionOptimizer',
]
