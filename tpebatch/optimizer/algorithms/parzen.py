"""Univariate Tree-structured Parzen Estimator."""

import bisect
import math
from typing import List, Optional, Sequence, Union

import numpy as np

from .base import Bound, DimensionOptimizer, ExhaustedError


_SQRT2 = math.sqrt(2.0)
_LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)


def _norm_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / _SQRT2))


class ParzenEstimator:
    """
    Mixture of truncated Gaussian kernels over a bounded interval.

    One kernel per observed point plus a wide prior kernel centred on the
    interval. Kernel widths come from the distance to the neighbouring
    points, clipped to [width / min(100, n + 1), width].
    """

    def __init__(self, points: Sequence[float], bound: Bound, prior_weight: float = 1.0):
        self.low = bound.low
        self.high = bound.high
        width = bound.width

        xs = np.sort(np.asarray(points, dtype=float))
        n = len(xs)

        if n:
            left = np.diff(np.concatenate(([self.low], xs)))
            right = np.diff(np.concatenate((xs, [self.high])))
            sigmas = np.maximum(left, right)
            min_sigma = width / min(100.0, n + 1.0)
            sigmas = np.clip(sigmas, min_sigma, width)
        else:
            sigmas = np.empty(0)

        self.mus = np.append(xs, self.low + width / 2.0)
        self.sigmas = np.append(sigmas, width)
        weights = np.append(np.ones(n), prior_weight)
        self.weights = weights / weights.sum()

        # Probability mass of each kernel inside [low, high]
        self._log_mass = np.array([
            math.log(max(
                _norm_cdf((self.high - mu) / sigma) - _norm_cdf((self.low - mu) / sigma),
                1e-300,
            ))
            for mu, sigma in zip(self.mus, self.sigmas)
        ])

    def sample(self, rng: np.random.Generator, max_resamples: int) -> float:
        """Draw one value inside the interval by rejection sampling."""
        for _ in range(max_resamples):
            k = rng.choice(len(self.weights), p=self.weights)
            x = rng.normal(self.mus[k], self.sigmas[k])
            if self.low <= x <= self.high:
                return float(x)
        raise ExhaustedError(
            f"no candidate inside [{self.low}, {self.high}] after {max_resamples} draws"
        )

    def log_pdf(self, xs: np.ndarray) -> np.ndarray:
        xs = np.asarray(xs, dtype=float)
        z = (xs[:, None] - self.mus[None, :]) / self.sigmas[None, :]
        log_kernels = (
            -0.5 * z * z
            - np.log(self.sigmas)[None, :]
            - _LOG_SQRT_2PI
            - self._log_mass[None, :]
            + np.log(self.weights)[None, :]
        )
        peak = log_kernels.max(axis=1, keepdims=True)
        return (peak + np.log(np.exp(log_kernels - peak).sum(axis=1, keepdims=True)))[:, 0]


class ParzenDimensionOptimizer(DimensionOptimizer):
    """
    Tree-structured Parzen Estimator over a single bounded dimension.

    Observations are kept sorted by score. The best `ceil(gamma * n)` form the
    superior set, the rest the inferior set. Each ask draws `n_candidates`
    samples from the superior estimator and returns the one maximising
    log l(x) - log g(x).
    """

    def __init__(
        self,
        bound: Union[Bound, Sequence[float]],
        gamma: float = 0.1,
        n_candidates: int = 24,
        prior_weight: float = 1.0,
        max_resamples: int = 100,
    ):
        super().__init__(bound)
        if not 0.0 < gamma <= 1.0:
            raise ValueError(f"gamma must be in (0, 1], got {gamma}")
        if n_candidates <= 0 or max_resamples <= 0:
            raise ValueError("n_candidates and max_resamples must be positive")

        self.gamma = gamma
        self.n_candidates = n_candidates
        self.prior_weight = prior_weight
        self.max_resamples = max_resamples

        # Observations sorted by ascending score; ties keep insertion order
        self._scores: List[float] = []
        self._values: List[float] = []

        self._estimators: Optional[tuple] = None

    def _record(self, value: float, score: float) -> None:
        i = bisect.bisect_right(self._scores, score)
        self._scores.insert(i, score)
        self._values.insert(i, value)
        self._estimators = None

    def _build_estimators(self) -> tuple:
        if self._estimators is None:
            split = int(math.ceil(len(self._values) * self.gamma))
            superior = ParzenEstimator(self._values[:split], self.bound, self.prior_weight)
            inferior = ParzenEstimator(self._values[split:], self.bound, self.prior_weight)
            self._estimators = (superior, inferior)
        return self._estimators

    def ask(self, rng: np.random.Generator) -> float:
        if self.bound.width == 0.0:
            return self.bound.low

        superior, inferior = self._build_estimators()
        candidates = np.array([
            superior.sample(rng, self.max_resamples) for _ in range(self.n_candidates)
        ])
        ratio = superior.log_pdf(candidates) - inferior.log_pdf(candidates)
        return float(candidates[int(np.argmax(ratio))])

    @property
    def best_value(self) -> Optional[float]:
        """Value with the lowest observed score, if any."""
        return self._values[0] if self._values else None
