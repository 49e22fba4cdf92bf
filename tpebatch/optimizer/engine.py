"""Core optimization engine that coordinates the batch ask/tell loop."""

import contextlib
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tpebatch.common.config import ParzenSettings
from tpebatch.common.logging import log_execution_time, log_system_event, log_trial_event
from .algorithms import (
    AskExhaustedError,
    OptunaDimensionOptimizer,
    ParameterVector,
    ParzenDimensionOptimizer,
    TellRejectedError,
)
from .executor import Objective, ParallelExecutor, TaskResult
from .joint import BoundSpec, DimensionFactory, JointOptimizer
from .monitoring import OptimizationMonitor
from .tracker import BestTracker

logger = logging.getLogger(__name__)


def create_dimension_factory(sampler: str = 'parzen', parzen: ParzenSettings = None) -> DimensionFactory:
    """Build the per-dimension optimizer factory for a sampler name."""
    if sampler == 'parzen':
        parzen = parzen or ParzenSettings()
        return partial(
            ParzenDimensionOptimizer,
            gamma=parzen.gamma,
            n_candidates=parzen.n_candidates,
            prior_weight=parzen.prior_weight,
            max_resamples=parzen.max_resamples
        )
    elif sampler == 'optuna':
        return OptunaDimensionOptimizer
    else:
        raise ValueError(f"Unknown sampler: {sampler}")


def create_optimizer(
    bounds: Mapping[str, BoundSpec],
    sampler: str = 'parzen',
    seed: Optional[int] = None,
    parzen: ParzenSettings = None
) -> JointOptimizer:
    """Create a JointOptimizer over `bounds` using the named sampler."""
    return JointOptimizer(
        bounds,
        dimension_factory=create_dimension_factory(sampler, parzen),
        seed=seed
    )


@dataclass
class OptimizationSummary:
    """Outcome of an optimization run."""
    trials_completed: int
    batches: int
    best_params: ParameterVector
    best_score: float
    best_objective: Optional[float]
    direction: str
    rejected_tells: int = 0
    failed_evaluations: int = 0
    elapsed_seconds: float = 0.0
    status: str = 'completed'
    extra: Dict[str, Any] = field(default_factory=dict)


class OptimizationEngine:
    """
    Core optimization engine.

    Coordinates the batch loop:
    1. Asks the joint optimizer for `batch_size` vectors, one at a time
    2. Evaluates the batch concurrently and waits for all of it
    3. Tells every result back in issue order and updates the best record
    4. Repeats until at least `trial_budget` trials have completed

    The budget is only checked between batches, so the last batch can take
    the total up to `trial_budget + batch_size - 1`. Every asked vector is
    evaluated and told; the final batch is never truncated.

    Only the evaluation step runs concurrently. Asking, telling, best-record
    updates and counting all happen on the calling thread.
    """

    def __init__(
        self,
        optimizer: JointOptimizer,
        objective: Objective,
        trial_budget: int = 1000,
        batch_size: int = 50,
        direction: str = 'minimize',
        executor: ParallelExecutor = None,
        num_workers: int = None,
        execution_method: str = 'thread',
        track_resources: bool = True
    ):
        """
        Initialize optimization engine.

        Args:
            optimizer: Joint optimizer producing and consuming parameter vectors
            objective: Function of a ParameterVector returning a scalar
            trial_budget: Minimum number of trials to complete
            batch_size: Number of vectors evaluated concurrently per batch
            direction: 'minimize' or 'maximize' (maximized values are negated for the model)
            executor: Executor to use; when None one is created and closed by run()
            num_workers: Workers for a created executor (None for batch_size)
            execution_method: 'thread' or 'process' for a created executor
            track_resources: Whether to record psutil snapshots per batch
        """
        if trial_budget <= 0:
            raise ValueError("trial_budget must be positive")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if direction not in ('minimize', 'maximize'):
            raise ValueError(f"direction must be 'minimize' or 'maximize', got {direction!r}")

        self.optimizer = optimizer
        self.objective = objective
        self.trial_budget = trial_budget
        self.batch_size = batch_size
        self.direction = direction
        self.executor = executor
        self.num_workers = num_workers if num_workers is not None else batch_size
        self.execution_method = execution_method

        self.tracker = BestTracker()
        self.monitor = OptimizationMonitor(trial_budget, track_resources=track_resources)

        # State
        self.completed = 0
        self.batches = 0
        self.rejected_tells = 0
        self.failed_evaluations = 0

    def _executor_context(self):
        if self.executor is not None:
            return contextlib.nullcontext(self.executor)
        return ParallelExecutor(num_workers=self.num_workers, method=self.execution_method)

    def _ask_batch(self) -> Tuple[List[ParameterVector], Optional[AskExhaustedError]]:
        """Ask for up to batch_size vectors; stop early on exhaustion."""
        vectors = []
        for _ in range(self.batch_size):
            try:
                vectors.append(self.optimizer.ask())
            except AskExhaustedError as e:
                return vectors, e
        return vectors, None

    def _tell_batch(self, results: List[TaskResult]) -> None:
        """Tell results in issue order, update the best record and count trials."""
        for result in results:
            trial = self.completed

            if not result.success:
                self.failed_evaluations += 1
                log_trial_event(
                    logger, 'evaluation_failed', trial, level=logging.WARNING,
                    params=result.vector.as_dict(),
                    error=(result.error or '').splitlines()[0] if result.error else None
                )

            try:
                self.optimizer.tell(result.vector, result.score)
            except TellRejectedError as e:
                self.rejected_tells += 1
                log_trial_event(
                    logger, 'tell_rejected', trial, level=logging.WARNING,
                    dimension=e.dimension,
                    reason=e.reason,
                    error=str(e.cause),
                    params=result.vector.as_dict()
                )
            else:
                if self.tracker.update(result.vector, result.score):
                    log_trial_event(
                        logger, 'new_best', trial, level=logging.DEBUG,
                        score=result.score,
                        params=result.vector.as_dict()
                    )

            self.completed += 1

    def _best_objective(self) -> Optional[float]:
        best = self.tracker.best
        if not best.is_set:
            return None
        return -best.score if self.direction == 'maximize' else best.score

    def _log_progress(self) -> None:
        status = self.monitor.get_status()
        progress = status['progress']
        eta = status['eta_seconds']
        eta_text = 'n/a' if eta is None else f'{eta:.1f}s'
        logger.info(
            f"Progress: {progress['completed']}/{progress['total']} trials "
            f"({progress['percent']:.1f}%), best score {self.tracker.best.score:.6g}, "
            f"ETA {eta_text}",
            extra={
                'batch': status['batches'],
                'eta_seconds': eta,
                'trials_per_second': status['trials_per_second'],
            }
        )

    def summary(self, status: str = 'completed') -> OptimizationSummary:
        best = self.tracker.best
        return OptimizationSummary(
            trials_completed=self.completed,
            batches=self.batches,
            best_params=best.vector,
            best_score=best.score,
            best_objective=self._best_objective(),
            direction=self.direction,
            rejected_tells=self.rejected_tells,
            failed_evaluations=self.failed_evaluations,
            elapsed_seconds=self.monitor.elapsed_seconds,
            status=status,
            extra={'resource_stats': self.monitor.resource_monitor.get_stats()}
        )

    def run(self) -> OptimizationSummary:
        """
        Run the optimization.

        Returns:
            OptimizationSummary for the run

        Raises:
            AskExhaustedError: if a dimension cannot produce a candidate. Vectors
                already asked in that batch are evaluated and told first.
        """
        logger.info(
            f"Starting optimization over {list(self.optimizer.dimensions)}: "
            f"budget={self.trial_budget}, batch_size={self.batch_size}, direction={self.direction}"
        )
        log_system_event(
            logger, 'run_started',
            trial_budget=self.trial_budget,
            batch_size=self.batch_size,
            bounds={k: (b.low, b.high) for k, b in self.optimizer.bounds.items()}
        )
        self.monitor.start()

        with self._executor_context() as executor:
            while self.completed < self.trial_budget:
                vectors, ask_error = self._ask_batch()

                if vectors:
                    with log_execution_time(logger, f"batch {self.batches}", level=logging.DEBUG):
                        results = executor.execute_batch(vectors, self.objective, self.direction)
                    self._tell_batch(results)
                    self.batches += 1
                    self.monitor.update_progress(self.completed, self.batches)

                if ask_error is not None:
                    logger.error(
                        f"Optimization aborted at stage '{ask_error.stage}' "
                        f"(dimension '{ask_error.dimension}'): {ask_error}"
                    )
                    log_system_event(
                        logger, 'run_aborted',
                        stage=ask_error.stage,
                        dimension=ask_error.dimension,
                        trials_completed=self.completed
                    )
                    raise ask_error

                self._log_progress()

        summary = self.summary()
        log_system_event(
            logger, 'run_completed',
            trials_completed=summary.trials_completed,
            batches=summary.batches,
            best_score=summary.best_score,
            rejected_tells=summary.rejected_tells,
            failed_evaluations=summary.failed_evaluations,
            elapsed_seconds=round(summary.elapsed_seconds, 3)
        )
        return summary
