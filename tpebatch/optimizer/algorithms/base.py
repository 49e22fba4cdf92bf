"""Base dimension optimizer class, bounds, parameter vectors and errors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterator, Sequence, Tuple, Union
import math

import numpy as np


class OptimizerError(Exception):
    """Base class for optimizer failures."""

    stage: str = "unknown"

    def __init__(self, message: str, dimension: str = None):
        super().__init__(message)
        self.dimension = dimension


class InvalidBoundError(OptimizerError, ValueError):
    """Raised when a bound is empty (low > high) or has a non-numeric or non-finite endpoint."""

    stage = "construction"


class ExhaustedError(OptimizerError):
    """Raised by a dimension optimizer that cannot produce a candidate."""

    stage = "ask"


class OutOfBoundsError(OptimizerError):
    """Raised when a told value lies outside the dimension's bound."""

    stage = "tell"


class ModelRejectedError(OptimizerError):
    """Raised when the model refuses an observation (e.g. a NaN score)."""

    stage = "tell"


class AskExhaustedError(OptimizerError):
    """Raised when any dimension fails to produce a candidate for a joint ask."""

    stage = "ask"

    def __init__(self, dimension: str, cause: Exception):
        super().__init__(
            f"ask failed for dimension '{dimension}': {cause}", dimension=dimension
        )
        self.cause = cause


class TellRejectedError(OptimizerError):
    """
    Raised when any dimension rejects a joint tell.

    Dimensions before `dimension` in the optimizer's order have already
    recorded the observation; they are not rolled back.
    """

    stage = "tell"

    def __init__(self, dimension: str, reason: str, cause: Exception):
        super().__init__(
            f"tell rejected by dimension '{dimension}' ({reason}): {cause}",
            dimension=dimension,
        )
        self.reason = reason
        self.cause = cause


@dataclass(frozen=True)
class Bound:
    """Closed interval [low, high] for one dimension."""

    low: float
    high: float

    def __post_init__(self):
        try:
            low = float(self.low)
            high = float(self.high)
        except (TypeError, ValueError):
            raise InvalidBoundError(
                f"Bound endpoints must be numbers, got [{self.low!r}, {self.high!r}]"
            )
        if not (math.isfinite(low) and math.isfinite(high)):
            raise InvalidBoundError(f"Bound endpoints must be finite, got [{low}, {high}]")
        if low > high:
            raise InvalidBoundError(f"Bound is empty: low {low} > high {high}")
        object.__setattr__(self, "low", low)
        object.__setattr__(self, "high", high)

    @property
    def width(self) -> float:
        return self.high - self.low

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high

    @classmethod
    def coerce(cls, bound: Union["Bound", Sequence[float]]) -> "Bound":
        """Build a Bound from a Bound or a (low, high) pair."""
        if isinstance(bound, Bound):
            return bound
        try:
            low, high = bound
        except (TypeError, ValueError):
            raise InvalidBoundError(f"Bound must be a (low, high) pair, got {bound!r}")
        return cls(low, high)


@dataclass(frozen=True)
class ParameterVector:
    """
    Immutable, fixed-arity vector of scalar parameters.

    Values are stored positionally; `names[i]` labels `values[i]`. Vectors
    are picklable so they can be shipped to worker processes.
    """

    names: Tuple[str, ...]
    values: Tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, "names", tuple(self.names))
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))
        if len(self.names) != len(self.values):
            raise ValueError(
                f"ParameterVector has {len(self.names)} names but {len(self.values)} values"
            )

    @classmethod
    def empty(cls) -> "ParameterVector":
        return cls((), ())

    @classmethod
    def from_dict(cls, params: Dict[str, float]) -> "ParameterVector":
        return cls(tuple(params.keys()), tuple(params.values()))

    def __getitem__(self, key: Union[int, str]) -> float:
        if isinstance(key, str):
            try:
                return self.values[self.names.index(key)]
            except ValueError:
                raise KeyError(key)
        return self.values[key]

    def __getattr__(self, name: str) -> float:
        # Only reached for names that are not dataclass fields
        if name.startswith("_") or name in ("names", "values"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(self.names, self.values))

    def __repr__(self) -> str:
        inner = ", ".join(f"{n}={v!r}" for n, v in zip(self.names, self.values))
        return f"ParameterVector({inner})"


class DimensionOptimizer(ABC):
    """
    Base class for single-dimension sequential-model-based optimizers.

    Implementations must provide:
    - ask(): draw one candidate scalar using the caller's random generator
    - tell(): record an observed (candidate, score) pair

    Scores follow the minimization convention. Instances are not thread-safe.
    """

    def __init__(self, bound: Union[Bound, Sequence[float]]):
        self.bound = Bound.coerce(bound)
        self.n_observations = 0

    @abstractmethod
    def ask(self, rng: np.random.Generator) -> float:
        """
        Produce a candidate within the bound.

        Raises:
            ExhaustedError: if no candidate could be generated
        """

    @abstractmethod
    def _record(self, value: float, score: float) -> None:
        """Store a validated observation in the model."""

    def discard(self, value: float) -> None:
        """
        Forget a value returned by ask() that will never be told.

        Called when a joint ask is abandoned after this dimension already
        produced its candidate. Stateless samplers have nothing to release.
        """

    def tell(self, value: float, score: float) -> None:
        """
        Record an observation.

        Raises:
            OutOfBoundsError: if `value` is outside the bound
            ModelRejectedError: if `score` is NaN
        """
        value = float(value)
        score = float(score)
        if not self.bound.contains(value):
            raise OutOfBoundsError(
                f"value {value} outside bound [{self.bound.low}, {self.bound.high}]"
            )
        if math.isnan(score):
            raise ModelRejectedError("score is NaN")
        self._record(value, score)
        self.n_observations += 1
