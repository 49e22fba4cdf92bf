"""Parallel execution engine for evaluating objective functions in batches."""

import math
import multiprocessing as mp
from concurrent.futures import BrokenExecutor, ProcessPoolExecutor, ThreadPoolExecutor
import logging
import time
from typing import Any, Callable, List, Optional
from dataclasses import dataclass
import traceback

from .algorithms import ParameterVector

logger = logging.getLogger(__name__)

# Score substituted for failed or non-finite evaluations
WORST_SCORE = math.inf

Objective = Callable[[ParameterVector], float]


@dataclass
class TaskResult:
    """Result from evaluating a single parameter vector."""
    vector: ParameterVector
    score: float
    success: bool
    raw_value: Optional[float] = None
    error: Optional[str] = None
    duration_s: float = 0.0


def run_objective_task(args: tuple) -> TaskResult:
    """
    Worker function to evaluate one parameter vector.

    Runs in a pool worker (thread or process). It only touches its own
    vector and the objective; it never sees optimizer state.

    Args:
        args: Tuple of (vector, objective, direction)

    Returns:
        TaskResult whose score is in minimization terms. Exceptions and
        non-finite results yield WORST_SCORE with success=False.
    """
    vector, objective, direction = args
    start = time.perf_counter()

    try:
        raw_value = float(objective(vector))
    except Exception as e:
        return TaskResult(
            vector=vector,
            score=WORST_SCORE,
            success=False,
            error=f"{type(e).__name__}: {str(e)}\n{traceback.format_exc()}",
            duration_s=time.perf_counter() - start
        )

    score = -raw_value if direction == 'maximize' else raw_value
    if not math.isfinite(score):
        return TaskResult(
            vector=vector,
            score=WORST_SCORE,
            success=False,
            raw_value=raw_value,
            error=f"non-finite objective value: {raw_value}",
            duration_s=time.perf_counter() - start
        )

    return TaskResult(
        vector=vector,
        score=score,
        success=True,
        raw_value=raw_value,
        duration_s=time.perf_counter() - start
    )


class ParallelExecutor:
    """
    Parallel execution engine for objective evaluations.

    Uses a thread pool (default) or a process pool. The pool is created on
    first use and kept until close(); use the executor as a context manager.
    With the process method the objective and vectors must be picklable.

    A worker process that dies mid-batch (os._exit or a fatal signal)
    breaks the process pool. Every task of that batch left without a result
    is scored WORST_SCORE and the pool is rebuilt for the next batch.
    """

    METHODS = ('thread', 'process')

    def __init__(self, num_workers: int = None, method: str = 'thread'):
        """
        Initialize parallel executor.

        Args:
            num_workers: Number of workers (None for CPU count)
            method: 'thread' or 'process'
        """
        if method not in self.METHODS:
            raise ValueError(f"method must be one of {self.METHODS}, got {method!r}")
        self.method = method

        if num_workers is None:
            self.num_workers = mp.cpu_count()
        elif method == 'process':
            self.num_workers = min(num_workers, mp.cpu_count())
        else:
            self.num_workers = num_workers

        self._pool = None
        self.pool_restarts = 0
        logger.info(f"Initialized ParallelExecutor with {self.num_workers} {method} workers")

    def _get_pool(self):
        if self._pool is None:
            if self.method == 'process':
                self._pool = ProcessPoolExecutor(max_workers=self.num_workers)
            else:
                self._pool = ThreadPoolExecutor(max_workers=self.num_workers)
        return self._pool

    def _discard_pool(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False, cancel_futures=True)
            self._pool = None

    def close(self) -> None:
        """Shut down the worker pool, waiting for running tasks."""
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self) -> "ParallelExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self._discard_pool()
        else:
            self.close()

    def _submit_all(self, tasks: List[tuple]) -> list:
        try:
            return [self._get_pool().submit(run_objective_task, task) for task in tasks]
        except BrokenExecutor:
            # A worker died while the pool sat idle between batches
            logger.warning("Worker pool was broken before submission; restarting it")
            self._discard_pool()
            self.pool_restarts += 1
            return [self._get_pool().submit(run_objective_task, task) for task in tasks]

    def execute_batch(
        self,
        vectors: List[ParameterVector],
        objective: Objective,
        direction: str = 'minimize',
        callback: Callable[[TaskResult], Any] = None
    ) -> List[TaskResult]:
        """
        Evaluate a batch of vectors in parallel and wait for all of them.

        Args:
            vectors: Parameter vectors to evaluate
            objective: Objective function
            direction: 'minimize' or 'maximize'
            callback: Optional callback called for each result, in issue order

        Returns:
            List of TaskResult objects in the same order as `vectors`
        """
        if not vectors:
            logger.warning("No parameter vectors to execute")
            return []

        logger.debug(
            f"Executing {len(vectors)} evaluations in parallel "
            f"with {self.num_workers} workers"
        )

        futures = self._submit_all([(vector, objective, direction) for vector in vectors])

        # Collected in issue order, not completion order
        results = []
        lost = 0
        for vector, future in zip(vectors, futures):
            try:
                results.append(future.result())
            except BrokenExecutor as e:
                lost += 1
                results.append(TaskResult(
                    vector=vector,
                    score=WORST_SCORE,
                    success=False,
                    error=f"{type(e).__name__}: worker died before returning a result"
                ))

        if lost:
            logger.warning(
                f"Worker pool broke during batch; {lost} of {len(vectors)} "
                f"evaluations scored as failures, restarting pool"
            )
            self._discard_pool()
            self.pool_restarts += 1

        self._report(results, callback)
        return results

    def execute_sequential(
        self,
        vectors: List[ParameterVector],
        objective: Objective,
        direction: str = 'minimize',
        callback: Callable[[TaskResult], Any] = None
    ) -> List[TaskResult]:
        """
        Evaluate vectors one after another in the calling thread (for debugging).

        Args:
            Same as execute_batch

        Returns:
            List of TaskResult objects
        """
        logger.debug(f"Executing {len(vectors)} evaluations sequentially")

        results = [run_objective_task((vector, objective, direction)) for vector in vectors]

        self._report(results, callback)
        return results

    def _report(self, results: List[TaskResult], callback: Optional[Callable[[TaskResult], Any]]) -> None:
        for result in results:
            if callback:
                try:
                    callback(result)
                except Exception as e:
                    logger.error(f"Callback failed: {e}")

        failures = sum(1 for r in results if not r.success)
        if failures:
            logger.info(
                f"Batch execution complete: {len(results) - failures} succeeded, {failures} failed"
            )
