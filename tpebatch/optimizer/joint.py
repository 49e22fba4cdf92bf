"""Joint optimizer composing independent per-dimension optimizers."""

import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .algorithms import (
    AskExhaustedError,
    Bound,
    DimensionOptimizer,
    ExhaustedError,
    InvalidBoundError,
    ModelRejectedError,
    OutOfBoundsError,
    ParameterVector,
    ParzenDimensionOptimizer,
    TellRejectedError,
)

logger = logging.getLogger(__name__)

BoundSpec = Union[Bound, Sequence[float]]
DimensionFactory = Callable[[Bound], DimensionOptimizer]


class JointOptimizer:
    """
    Ask/tell over a ParameterVector, delegating to one optimizer per dimension.

    Dimensions are held in a fixed positional order taken from `bounds`. All
    per-dimension asks draw from one shared numpy Generator. This object is
    not thread-safe: ask() and tell() must be called from a single thread.
    """

    def __init__(
        self,
        bounds: Union[Mapping[str, BoundSpec], Sequence[Tuple[str, BoundSpec]]],
        dimension_factory: DimensionFactory = ParzenDimensionOptimizer,
        seed: Optional[int] = None,
    ):
        """
        Initialize joint optimizer.

        Args:
            bounds: Ordered mapping (or sequence of pairs) of dimension name to (low, high)
            dimension_factory: Callable building a DimensionOptimizer from a Bound
            seed: Seed for the shared random generator

        Raises:
            InvalidBoundError: if any bound is empty or non-finite
        """
        items = list(bounds.items()) if isinstance(bounds, Mapping) else list(bounds)
        if not items:
            raise ValueError("JointOptimizer needs at least one dimension")

        names = [name for name, _ in items]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate dimension names: {names}")

        self._names: Tuple[str, ...] = tuple(names)
        self._bounds: Dict[str, Bound] = {}
        self._dimensions: List[DimensionOptimizer] = []

        for name, spec in items:
            try:
                bound = Bound.coerce(spec)
            except InvalidBoundError as e:
                raise InvalidBoundError(
                    f"invalid bound for dimension '{name}': {e}", dimension=name
                ) from e
            self._bounds[name] = bound
            self._dimensions.append(dimension_factory(bound))

        self._rng = np.random.default_rng(seed)
        self.n_asked = 0
        self.n_told = 0

        logger.debug(f"JointOptimizer initialized with dimensions {self._names}")

    @property
    def dimensions(self) -> Tuple[str, ...]:
        return self._names

    @property
    def bounds(self) -> Dict[str, Bound]:
        return dict(self._bounds)

    def ask(self) -> ParameterVector:
        """
        Draw one candidate from every dimension, in dimension order.

        Raises:
            AskExhaustedError: if any dimension cannot produce a candidate
        """
        values = []
        for name, dimension in zip(self._names, self._dimensions):
            try:
                values.append(dimension.ask(self._rng))
            except ExhaustedError as e:
                for earlier, value in zip(self._dimensions, values):
                    earlier.discard(value)
                raise AskExhaustedError(name, e) from e

        self.n_asked += 1
        return ParameterVector(self._names, tuple(values))

    def tell(self, vector: ParameterVector, score: float) -> None:
        """
        Report one observation to every dimension, in dimension order.

        Not atomic: if dimension k rejects, dimensions before k have already
        recorded the observation and are not rolled back.

        Raises:
            ValueError: if the vector's dimension names do not match
            TellRejectedError: if any dimension rejects the observation
        """
        if vector.names != self._names:
            raise ValueError(
                f"vector dimensions {vector.names} do not match optimizer dimensions {self._names}"
            )

        for name, dimension, value in zip(self._names, self._dimensions, vector.values):
            try:
                dimension.tell(value, score)
            except OutOfBoundsError as e:
                raise TellRejectedError(name, "out_of_bounds", e) from e
            except ModelRejectedError as e:
                raise TellRejectedError(name, "model_rejected", e) from e

        self.n_told += 1
