"""
Tests for the maintenance controller.

Tests pruning thresholds, cycle ordering, failure isolation and the
start/stop lifecycle driven by a manual clock.
"""

import threading

import pytest

from ab_learning.core.exceptions import InvalidArgument
from ab_learning.evolution.advanced_bandits import AdaptiveExplorationScheduler
from ab_learning.evolution.bayesian_sampler import BayesianSampler
from ab_learning.evolution.maintenance_controller import MaintenanceController
from ab_learning.evolution.prompt_evolution_engine import PromptEvolutionEngine

from conftest import StubGenerator


@pytest.fixture
def controller(storage, posterior_store, manual_clock):
    evolution = PromptEvolutionEngine(storage, posterior_store, StubGenerator(), BayesianSampler(seed=31))
    ctrl = MaintenanceController(
        storage,
        posterior_store,
        evolution,
        AdaptiveExplorationScheduler(),
        interval=3600,
        clock=manual_clock
    )
    yield ctrl
    ctrl.stop(timeout=5)


def wait_for_cycles(controller, count):
    """Event set once the controller has reported `count` cycles."""
    done = threading.Event()
    seen = []

    def listener(report):
        seen.append(report)
        if len(seen) >= count:
            done.set()

    controller.add_listener(listener)
    return done, seen


class TestPruning:
    """Test MaintenanceController.prune."""

    def test_prunes_experienced_losers_only(self, storage, controller, set_posterior):
        """25 trials at 3% is pruned; 10 trials at 3% is kept."""
        loser = storage.create_variant("loser").id
        young = storage.create_variant("young").id
        set_posterior(loser, alpha=0.3, beta=9.7, total_trials=25)
        set_posterior(young, alpha=0.3, beta=9.7, total_trials=10)

        report = controller.run_cycle()

        assert report.pruned == [loser]
        assert storage.get_variant(loser) is None
        assert storage.get_variant(young) is not None

    def test_keeps_variants_at_threshold_win_rate(self, storage, controller, set_posterior):
        """A win rate of exactly 5% is not below the cutoff."""
        variant = storage.create_variant("borderline").id
        set_posterior(variant, alpha=1.0, beta=19.0, total_trials=30)

        assert controller.prune() == []
        assert storage.get_variant(variant) is not None

    def test_pruning_keeps_feedback_history(self, storage, posterior_store, controller):
        from ab_learning.storage import FeedbackEvent

        variant = storage.create_variant("bad").id
        for i in range(25):
            posterior_store.apply_feedback(FeedbackEvent(f"t{i}", variant, 0.0, 10.0, 1.0, False, float(i)))
        posterior_store.boost(variant, 'beta', 20.0)

        assert controller.prune() == [variant]
        assert len(storage.get_feedback(variant)) == 25


class TestCycle:
    """Test MaintenanceController.run_cycle."""

    def test_cycle_runs_all_steps(self, storage, controller, set_posterior):
        for i in range(3):
            variant = storage.create_variant(f"v{i}").id
            set_posterior(variant, alpha=10.0, beta=5.0, total_trials=13, avg_reward=0.6 + i * 0.1)

        report = controller.run_cycle()

        assert report.ok
        assert len(report.evolved) == 2
        assert report.exploration_rate == pytest.approx(0.285)
        assert controller.cycles_run == 1

    def test_failing_step_does_not_stop_others(self, controller, monkeypatch):
        """An exception in prune is reported; evolve and decay still run."""
        def broken(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(controller.storage, "find_prune_candidates", broken)

        report = controller.run_cycle()

        assert not report.ok
        assert report.errors[0].startswith("prune: RuntimeError")
        assert report.exploration_rate == pytest.approx(0.285)

    def test_listener_failure_is_contained(self, controller):
        def bad_listener(report):
            raise ValueError("listener bug")

        controller.add_listener(bad_listener)

        assert controller.run_cycle().ok

    def test_invalid_interval(self, storage, posterior_store):
        evolution = PromptEvolutionEngine(storage, posterior_store, StubGenerator(), BayesianSampler(seed=1))

        with pytest.raises(InvalidArgument):
            MaintenanceController(storage, posterior_store, evolution, AdaptiveExplorationScheduler(), interval=0)


class TestLifecycle:
    """Test start/stop with a manual clock."""

    def test_cycle_runs_when_clock_advances(self, controller, manual_clock):
        done, seen = wait_for_cycles(controller, 1)
        controller.start()

        assert controller.is_running
        manual_clock.advance(3600)

        assert done.wait(5.0)
        assert len(seen) == 1

    def test_no_cycle_before_interval(self, controller, manual_clock):
        controller.start()
        manual_clock.advance(1800)

        assert controller.stop(timeout=5)
        assert controller.cycles_run == 0

    def test_stop_is_observable(self, controller):
        controller.start()

        assert controller.stop(timeout=5) is True
        assert not controller.is_running

    def test_stop_without_start(self, controller):
        assert controller.stop(timeout=1) is True

    def test_restart_after_stop(self, controller, manual_clock):
        controller.start()
        controller.stop(timeout=5)

        done, _ = wait_for_cycles(controller, 1)
        controller.start()
        manual_clock.advance(3600)

        assert done.wait(5.0)
        assert controller.stop(timeout=5)

    def test_double_start_keeps_one_thread(self, controller):
        controller.start()
        thread = controller._thread

        controller.start()

        assert controller._thread is thread
