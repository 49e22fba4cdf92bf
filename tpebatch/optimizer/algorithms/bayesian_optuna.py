"""Bayesian optimization of a single dimension using the Optuna framework."""

import optuna
from typing import Dict, List, Sequence, Union
import logging

import numpy as np

from .base import Bound, DimensionOptimizer, ModelRejectedError

logger = logging.getLogger(__name__)


class OptunaDimensionOptimizer(DimensionOptimizer):
    """
    Single-dimension optimizer backed by an Optuna study.

    Uses Optuna's Tree-structured Parzen Estimator sampler. The sampler is
    reseeded from the caller's generator on every ask, so all randomness
    still flows from the one shared source.

    Values returned by ask() are matched to their pending Optuna trial on
    tell(); values produced elsewhere are added as completed trials.
    """

    PARAM_NAME = "x"

    def __init__(
        self,
        bound: Union[Bound, Sequence[float]],
        n_startup_trials: int = 10,
        n_ei_candidates: int = 24,
    ):
        """
        Initialize the Optuna-backed optimizer.

        Args:
            bound: Closed interval for this dimension
            n_startup_trials: Number of random trials before TPE starts
            n_ei_candidates: Candidates scored per TPE suggestion
        """
        super().__init__(bound)

        self.n_startup_trials = n_startup_trials
        self.n_ei_candidates = n_ei_candidates

        # Suppress Optuna's logging
        optuna.logging.set_verbosity(optuna.logging.WARNING)

        self.distribution = optuna.distributions.FloatDistribution(
            self.bound.low, self.bound.high
        )
        self.study = optuna.create_study(
            direction='minimize',
            sampler=self._make_sampler(seed=None)
        )

        # Trials handed out by ask() and not yet told, keyed by value
        self._pending: Dict[float, List[optuna.trial.Trial]] = {}

    def _make_sampler(self, seed) -> optuna.samplers.TPESampler:
        return optuna.samplers.TPESampler(
            n_startup_trials=self.n_startup_trials,
            n_ei_candidates=self.n_ei_candidates,
            seed=seed
        )

    def ask(self, rng: np.random.Generator) -> float:
        self.study.sampler = self._make_sampler(seed=int(rng.integers(2**31 - 1)))

        trial = self.study.ask(fixed_distributions={self.PARAM_NAME: self.distribution})
        value = float(trial.params[self.PARAM_NAME])

        self._pending.setdefault(value, []).append(trial)
        return value

    def _record(self, value: float, score: float) -> None:
        trials = self._pending.get(value)
        try:
            if trials:
                trial = trials.pop(0)
                if not trials:
                    del self._pending[value]
                self.study.tell(trial, score)
            else:
                self.study.add_trial(
                    optuna.trial.create_trial(
                        params={self.PARAM_NAME: value},
                        distributions={self.PARAM_NAME: self.distribution},
                        value=score
                    )
                )
        except (ValueError, RuntimeError) as e:
            raise ModelRejectedError(f"optuna rejected observation: {e}") from e

    def discard(self, value: float) -> None:
        """Close the pending trial for `value` as failed so the study holds no open trial."""
        trials = self._pending.get(value)
        if not trials:
            return
        trial = trials.pop(0)
        if not trials:
            del self._pending[value]
        self.study.tell(trial, state=optuna.trial.TrialState.FAIL)

    @property
    def pending_count(self) -> int:
        """Number of asked values still waiting for a tell."""
        return sum(len(t) for t in self._pending.values())
