"""
Run monitoring for batch optimization.

Tracks trial-budget progress per batch and samples the harness process
(and any worker processes it spawned) with psutil between batches.
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass
class BatchSnapshot:
    """Resource usage sampled right after a batch was told."""
    batch: int
    trials_completed: int
    cpu_percent: float
    rss_mb: float
    threads: int
    worker_processes: int
    workers_rss_mb: float


class ResourceMonitor:
    """
    Samples the harness process once per batch.

    Worker processes of a process pool are children of the harness, so their
    count and resident memory are reported separately from the harness's own.
    With a thread pool the workers show up in `threads` instead.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.process = psutil.Process()
        self.snapshots: List[BatchSnapshot] = []

    def start(self) -> None:
        self.snapshots = []
        if self.enabled:
            # First cpu_percent() call only sets the reference point
            self.process.cpu_percent(interval=None)

    def sample(self, batch: int, trials_completed: int) -> Optional[BatchSnapshot]:
        """Record usage for `batch`; returns None when disabled or psutil fails."""
        if not self.enabled:
            return None

        try:
            with self.process.oneshot():
                cpu_percent = self.process.cpu_percent(interval=None)
                rss = self.process.memory_info().rss
                threads = self.process.num_threads()
            workers = self.process.children(recursive=True)
            workers_rss = 0
            for worker in workers:
                try:
                    workers_rss += worker.memory_info().rss
                except psutil.NoSuchProcess:
                    # Worker exited between listing and sampling
                    continue
        except psutil.Error as e:
            logger.warning(f"Resource sample for batch {batch} failed: {e}")
            return None

        snapshot = BatchSnapshot(
            batch=batch,
            trials_completed=trials_completed,
            cpu_percent=cpu_percent,
            rss_mb=rss / (1024 * 1024),
            threads=threads,
            worker_processes=len(workers),
            workers_rss_mb=workers_rss / (1024 * 1024),
        )
        self.snapshots.append(snapshot)
        return snapshot

    def get_stats(self) -> Dict[str, Any]:
        """Peak and latest usage over the sampled batches."""
        if not self.snapshots:
            return {'enabled': self.enabled, 'batches_sampled': 0}

        last = self.snapshots[-1]
        return {
            'enabled': self.enabled,
            'batches_sampled': len(self.snapshots),
            'peak_rss_mb': max(s.rss_mb for s in self.snapshots),
            'peak_workers_rss_mb': max(s.workers_rss_mb for s in self.snapshots),
            'peak_worker_processes': max(s.worker_processes for s in self.snapshots),
            'last': asdict(last),
        }


class OptimizationMonitor:
    """
    Progress of a run against its trial budget.

    The loop may overshoot the budget by up to one batch, so percent is
    capped at 100 and remaining never goes below zero.
    """

    def __init__(self, trial_budget: int, track_resources: bool = True):
        self.trial_budget = trial_budget
        self.completed_trials = 0
        self.batches = 0
        self.resource_monitor = ResourceMonitor(enabled=track_resources)
        self.start_time: Optional[float] = None

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.completed_trials = 0
        self.batches = 0
        self.resource_monitor.start()

    def update_progress(self, completed: int, batches: int) -> None:
        """
        Record progress after a batch has been told.

        Args:
            completed: Trials completed so far
            batches: Batches completed so far
        """
        self.completed_trials = completed
        self.batches = batches
        self.resource_monitor.sample(batches, completed)

    @property
    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self.start_time if self.start_time is not None else 0.0

    def get_status(self) -> Dict[str, Any]:
        """Progress, throughput and ETA, plus resource stats."""
        elapsed = self.elapsed_seconds
        remaining = max(0, self.trial_budget - self.completed_trials)

        trials_per_second = None
        eta_seconds = None
        if self.completed_trials > 0 and elapsed > 0:
            trials_per_second = self.completed_trials / elapsed
            eta_seconds = remaining / trials_per_second

        return {
            'elapsed_seconds': elapsed,
            'batches': self.batches,
            'progress': {
                'completed': self.completed_trials,
                'total': self.trial_budget,
                'percent': min(100.0, self.completed_trials / self.trial_budget * 100),
                'remaining': remaining,
            },
            'trials_per_second': trials_per_second,
            'eta_seconds': eta_seconds,
            'resource_stats': self.resource_monitor.get_stats(),
        }
