"""Tests for best-observation tracking."""

import math

import numpy as np

from tpebatch.optimizer.algorithms import ParameterVector
from tpebatch.optimizer.tracker import BestTracker


def _vec(x):
    return ParameterVector(("x",), (x,))


class TestBestTracker:
    """Test BestTracker update semantics."""

    def test_initial_record(self):
        tracker = BestTracker()
        assert tracker.best.score == math.inf
        assert len(tracker.best.vector) == 0
        assert not tracker.best.is_set

    def test_strict_improvement_replaces(self):
        tracker = BestTracker()
        assert tracker.update(_vec(0.1), 5.0)
        assert tracker.update(_vec(0.2), 4.0)
        assert not tracker.update(_vec(0.3), 4.5)
        assert tracker.best.vector == _vec(0.2)
        assert tracker.best.score == 4.0
        assert tracker.updates == 2

    def test_tie_keeps_earlier_record(self):
        tracker = BestTracker()
        tracker.update(_vec(0.1), 1.0)
        assert not tracker.update(_vec(0.9), 1.0)
        assert tracker.best.vector == _vec(0.1)

    def test_worst_score_and_nan_never_replace(self):
        tracker = BestTracker()
        assert not tracker.update(_vec(0.5), math.inf)
        assert not tracker.update(_vec(0.5), float("nan"))
        assert not tracker.best.is_set

    def test_monotonic_and_equal_to_minimum(self):
        tracker = BestTracker()
        rng = np.random.default_rng(0)
        scores = rng.normal(size=200)
        previous = math.inf
        for i, score in enumerate(scores):
            tracker.update(_vec(float(i)), float(score))
            assert tracker.best.score <= previous
            previous = tracker.best.score
        assert tracker.best.score == float(scores.min())
        assert tracker.best.vector == _vec(float(scores.argmin()))
