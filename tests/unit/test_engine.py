"""Tests for the batch ask/tell optimization loop."""

import logging
import math
import os
from functools import partial
from unittest.mock import MagicMock

import pytest

from tpebatch.optimizer.algorithms import (
    AskExhaustedError,
    DimensionOptimizer,
    ExhaustedError,
    ModelRejectedError,
    ParzenDimensionOptimizer,
)
from tpebatch.optimizer.engine import OptimizationEngine, create_optimizer
from tpebatch.optimizer.executor import ParallelExecutor, WORST_SCORE
from tpebatch.optimizer.joint import JointOptimizer
from tpebatch.optimizer.objectives import ratio_objective, sphere


def exit_worker(v):
    """Kills the worker process without returning."""
    os._exit(1)


UNIT_BOUNDS = {"a": (0.0, 1.0), "b": (0.0, 1.0), "c": (0.0, 1.0), "d": (0.0, 1.0)}


class RejectingDimension(ParzenDimensionOptimizer):
    """Samples normally but rejects every observation."""

    def _record(self, value, score):
        raise ModelRejectedError("simulated rejection")


class ExhaustingDimension(ParzenDimensionOptimizer):
    """Stops producing candidates after `limit` asks."""

    def __init__(self, bound, limit):
        super().__init__(bound)
        self.limit = limit
        self.asks = 0

    def ask(self, rng):
        self.asks += 1
        if self.asks > self.limit:
            raise ExhaustedError("candidate pool exhausted")
        return super().ask(rng)


def _spy_tell(optimizer: JointOptimizer) -> MagicMock:
    spy = MagicMock(wraps=optimizer.tell)
    optimizer.tell = spy
    return spy


def _told_scores(spy: MagicMock):
    return [c.args[1] for c in spy.call_args_list]


def _engine(optimizer=None, objective=sphere, **kwargs):
    optimizer = optimizer or create_optimizer({"x": (-1.0, 1.0), "y": (-1.0, 1.0)}, seed=0)
    kwargs.setdefault("track_resources", False)
    return OptimizationEngine(optimizer=optimizer, objective=objective, **kwargs)


class TestLoopTermination:
    """Test trial counting and budget handling."""

    def test_exact_multiple_of_batch(self):
        engine = _engine(trial_budget=20, batch_size=5)
        summary = engine.run()
        assert summary.trials_completed == 20
        assert summary.batches == 4
        assert summary.status == "completed"

    @pytest.mark.parametrize("budget,batch", [(23, 5), (1, 4), (3, 10), (10, 1), (99, 7)])
    def test_batches_and_overshoot(self, budget, batch):
        engine = _engine(trial_budget=budget, batch_size=batch)
        summary = engine.run()
        expected_batches = math.ceil(budget / batch)
        assert summary.batches == expected_batches
        assert summary.trials_completed == expected_batches * batch
        assert budget <= summary.trials_completed <= budget + batch - 1

    def test_every_asked_vector_is_told_once(self):
        optimizer = create_optimizer(UNIT_BOUNDS, seed=1)
        engine = _engine(optimizer, trial_budget=30, batch_size=8)
        engine.run()
        assert optimizer.n_asked == optimizer.n_told == 32

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            _engine(trial_budget=0)
        with pytest.raises(ValueError):
            _engine(batch_size=0)
        with pytest.raises(ValueError):
            _engine(direction="sideways")


class TestObservations:
    """Test what reaches tell and the best record."""

    def test_best_is_minimum_of_told_scores(self):
        optimizer = create_optimizer({"x": (-1.0, 1.0)}, seed=2)
        spy = _spy_tell(optimizer)
        engine = _engine(optimizer, trial_budget=40, batch_size=10)
        summary = engine.run()

        scores = _told_scores(spy)
        assert len(scores) == 40
        assert summary.best_score == min(scores)
        assert engine.tracker.best.score == min(scores)

    def test_non_finite_objective_never_reaches_tell(self):
        def sometimes_nan(v):
            return float("nan") if v["x"] > -0.5 else v["x"]

        optimizer = create_optimizer({"x": (-1.0, 1.0)}, seed=4)
        spy = _spy_tell(optimizer)
        engine = _engine(optimizer, objective=sometimes_nan, trial_budget=30, batch_size=6)
        summary = engine.run()

        scores = _told_scores(spy)
        assert not any(math.isnan(s) for s in scores)
        assert all(s == WORST_SCORE or math.isfinite(s) for s in scores)
        assert summary.failed_evaluations == scores.count(WORST_SCORE)
        assert summary.failed_evaluations > 0
        assert math.isfinite(summary.best_score)

    def test_objective_crash_does_not_abort_loop(self, caplog):
        def crash_on_positive(v):
            if v["x"] > -0.5:
                raise RuntimeError("objective crashed")
            return -v["x"]

        engine = _engine(
            create_optimizer({"x": (-1.0, 1.0)}, seed=5),
            objective=crash_on_positive, trial_budget=20, batch_size=5
        )
        with caplog.at_level(logging.WARNING, logger="tpebatch"):
            summary = engine.run()

        assert summary.trials_completed == 20
        assert summary.failed_evaluations > 0
        assert any(getattr(r, "event_type", None) == "evaluation_failed" for r in caplog.records)

    def test_tell_order_matches_issue_order(self):
        optimizer = create_optimizer({"x": (0.0, 1.0)}, seed=6)
        asked = []
        original_ask = optimizer.ask

        def recording_ask():
            vec = original_ask()
            asked.append(vec)
            return vec

        optimizer.ask = recording_ask
        spy = _spy_tell(optimizer)
        _engine(optimizer, trial_budget=12, batch_size=4).run()

        assert [c.args[0] for c in spy.call_args_list] == asked

    def test_progress_logged_per_batch_with_eta(self, caplog):
        engine = _engine(trial_budget=12, batch_size=4)
        with caplog.at_level(logging.INFO, logger="tpebatch"):
            engine.run()

        progress = [r for r in caplog.records if r.getMessage().startswith("Progress:")]
        assert [r.batch for r in progress] == [1, 2, 3]
        assert all(r.eta_seconds is not None for r in progress)
        assert progress[-1].eta_seconds == 0.0
        assert "ETA" in progress[0].getMessage()

    def test_maximize_reports_objective_in_user_direction(self):
        engine = _engine(
            create_optimizer(UNIT_BOUNDS, seed=7),
            objective=partial(ratio_objective, delay_ms=0),
            trial_budget=30, batch_size=10, direction="maximize"
        )
        summary = engine.run()
        assert summary.direction == "maximize"
        assert summary.best_objective == -summary.best_score
        assert summary.best_objective > 0


class TestFailureHandling:
    """Test tell rejection and ask exhaustion policies."""

    def test_rejecting_dimension_still_counts_trials(self, caplog):
        created = []

        def factory(bound):
            created.append(bound)
            if len(created) == 3:
                return RejectingDimension(bound)
            return ParzenDimensionOptimizer(bound)

        optimizer = JointOptimizer(UNIT_BOUNDS, dimension_factory=factory, seed=0)
        engine = _engine(optimizer, objective=sphere, trial_budget=25, batch_size=5)

        completed_after_batch = []
        original_tell_batch = engine._tell_batch

        def recording_tell_batch(results):
            original_tell_batch(results)
            completed_after_batch.append(engine.completed)

        engine._tell_batch = recording_tell_batch

        with caplog.at_level(logging.WARNING, logger="tpebatch"):
            summary = engine.run()

        assert completed_after_batch == [5, 10, 15, 20, 25]
        assert summary.rejected_tells == 25
        assert not engine.tracker.best.is_set
        assert summary.best_score == math.inf
        assert summary.best_objective is None
        rejected = [r for r in caplog.records if getattr(r, "event_type", None) == "tell_rejected"]
        assert len(rejected) == 25
        assert rejected[0].trial_data["dimension"] == "c"

    def test_ask_exhaustion_tells_partial_batch_then_aborts(self):
        optimizer = JointOptimizer(
            {"x": (0.0, 1.0)},
            dimension_factory=partial(ExhaustingDimension, limit=6),
            seed=0
        )
        engine = _engine(optimizer, trial_budget=20, batch_size=5)

        with pytest.raises(AskExhaustedError) as exc_info:
            engine.run()

        assert exc_info.value.dimension == "x"
        assert engine.completed == 6
        assert engine.batches == 2
        assert optimizer.n_asked == optimizer.n_told == 6

    def test_dead_process_workers_do_not_stall_the_loop(self):
        engine = _engine(
            create_optimizer({"x": (0.6, 1.0)}, seed=0),
            objective=exit_worker, trial_budget=8, batch_size=4,
            num_workers=2, execution_method="process"
        )
        summary = engine.run()

        assert summary.trials_completed == 8
        assert summary.batches == 2
        assert summary.failed_evaluations == 8
        assert not engine.tracker.best.is_set

    def test_executor_passed_in_is_not_closed(self):
        executor = ParallelExecutor(num_workers=2)
        try:
            _engine(trial_budget=4, batch_size=2, executor=executor).run()
            assert executor._pool is not None
        finally:
            executor.close()


class TestRatioScenario:
    """Fixed-input scenario for the ratio objective."""

    def test_fixed_point_scores_negated_half(self):
        bounds = {"a": (0.5, 0.5), "b": (0.5, 0.5), "c": (0.5, 0.5), "d": (0.0, 0.0)}
        optimizer = create_optimizer(bounds, seed=0)
        spy = _spy_tell(optimizer)
        engine = _engine(
            optimizer, objective=partial(ratio_objective, delay_ms=0),
            trial_budget=100, batch_size=10, direction="maximize"
        )
        summary = engine.run()

        assert summary.trials_completed == 100
        assert _told_scores(spy) == [pytest.approx(-0.5)] * 100
        assert summary.best_score == pytest.approx(-0.5)
        assert summary.best_params.as_dict() == {"a": 0.5, "b": 0.5, "c": 0.5, "d": 0.0}
        # Ties keep the first record
        assert engine.tracker.updates == 1

    def test_unit_bounds_never_worse_than_first_score(self):
        optimizer = create_optimizer(UNIT_BOUNDS, seed=0)
        spy = _spy_tell(optimizer)
        engine = _engine(
            optimizer, objective=partial(ratio_objective, delay_ms=0),
            trial_budget=100, batch_size=10, direction="maximize"
        )
        summary = engine.run()

        first = _told_scores(spy)[0]
        assert summary.trials_completed == 100
        assert summary.best_score <= first
        assert summary.best_score < -0.5
