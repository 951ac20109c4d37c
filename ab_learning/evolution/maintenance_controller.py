"""
Maintenance Controller
Periodic prune, evolve and exploration decay on a background thread
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..core.exceptions import InvalidArgument
from ..core.utils.clock import Clock, SystemClock
from ..storage.posterior_store import PosteriorStore
from ..storage.variant_storage import VariantStorage
from .advanced_bandits import AdaptiveExplorationScheduler
from .prompt_evolution_engine import PromptEvolutionEngine

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Outcome of one maintenance cycle"""
    started_at: float
    pruned: List[str] = field(default_factory=list)
    evolved: List[str] = field(default_factory=list)
    exploration_rate: Optional[float] = None
    errors: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


class MaintenanceController:
    """
    Runs self-maintenance cycles

    Each cycle prunes losing variants, breeds new ones, then decays the
    exploration rate. A failing step is logged and reported; the remaining
    steps and future cycles still run.
    """

    def __init__(
        self,
        storage: VariantStorage,
        posterior_store: PosteriorStore,
        evolution_engine: PromptEvolutionEngine,
        exploration: AdaptiveExplorationScheduler,
        interval: float = 3600,
        clock: Optional[Clock] = None,
        prune_min_trials: int = 20,
        prune_max_win_rate: float = 0.05,
        population_size: int = 5,
        generations: int = 2
    ):
        """
        Initialize maintenance controller

        Args:
            storage: Variant storage
            posterior_store: Posterior owner (pruning deletes under its lock)
            evolution_engine: Engine used for the evolve step
            exploration: Scheduler decayed at the end of each cycle
            interval: Seconds between cycles
            clock: Time source (system clock if None)
            prune_min_trials: Trials a variant needs before it can be pruned
            prune_max_win_rate: Win rate below which a variant is pruned
            population_size: Breeding pool size for the evolve step
            generations: Offspring attempted per cycle
        """
        if interval <= 0:
            raise InvalidArgument(f"interval must be positive, got {interval}")

        self.storage = storage
        self.posterior_store = posterior_store
        self.evolution_engine = evolution_engine
        self.exploration = exploration
        self.interval = interval
        self.clock = clock or SystemClock()
        self.prune_min_trials = prune_min_trials
        self.prune_max_win_rate = prune_max_win_rate
        self.population_size = population_size
        self.generations = generations

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lifecycle_lock = threading.Lock()
        self._listeners: List[Callable[[CycleReport], None]] = []

        self.cycles_run = 0
        self.last_report: Optional[CycleReport] = None

    def add_listener(self, listener: Callable[[CycleReport], None]):
        """Add a callback invoked with every cycle report"""
        self._listeners.append(listener)

    def prune(self) -> List[str]:
        """
        Delete variants that have had enough trials and keep losing

        Returns:
            Ids that were deleted
        """
        pruned = []
        for variant_id in self.storage.find_prune_candidates(self.prune_min_trials, self.prune_max_win_rate):
            # Re-check under the variant lock; feedback may have landed since the scan
            with self.posterior_store.lock_for(variant_id):
                posterior = self.storage.get_posterior(variant_id)
                if posterior is None:
                    continue
                if posterior.total_trials < self.prune_min_trials or posterior.win_rate >= self.prune_max_win_rate:
                    continue
                if self.posterior_store.delete(variant_id):
                    pruned.append(variant_id)

        if pruned:
            logger.info(f"Pruned {len(pruned)} underperforming variants")
        return pruned

    def run_cycle(self) -> CycleReport:
        """Run prune, evolve and decay once"""
        report = CycleReport(started_at=time.time())
        start = time.time()

        try:
            report.pruned = self.prune()
        except Exception as e:
            logger.error(f"Prune step failed: {e}", exc_info=True)
            report.errors.append(f"prune: {type(e).__name__}: {e}")

        # Only scheduled cycles are cancelled by stop()
        on_schedule = threading.current_thread() is self._thread
        try:
            report.evolved = self.evolution_engine.evolve(
                self.population_size,
                self.generations,
                cancel_event=self._stop_event if on_schedule else None
            )
        except Exception as e:
            logger.error(f"Evolve step failed: {e}", exc_info=True)
            report.errors.append(f"evolve: {type(e).__name__}: {e}")

        try:
            report.exploration_rate = self.exploration.decay()
        except Exception as e:
            logger.error(f"Exploration decay failed: {e}", exc_info=True)
            report.errors.append(f"decay: {type(e).__name__}: {e}")

        report.duration = time.time() - start
        self.cycles_run += 1
        self.last_report = report

        logger.info(
            f"Maintenance cycle {self.cycles_run}: pruned={len(report.pruned)}, "
            f"evolved={len(report.evolved)}, exploration={report.exploration_rate}, "
            f"errors={len(report.errors)}"
        )

        for listener in list(self._listeners):
            try:
                listener(report)
            except Exception as e:
                logger.error(f"Maintenance listener failed: {e}")

        return report

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the periodic schedule; first cycle runs one interval from now"""
        with self._lifecycle_lock:
            if self.is_running:
                logger.warning("Maintenance already running")
                return

            self._stop_event.clear()
            # Deadline is fixed here so time advanced right after start() counts
            self._thread = threading.Thread(
                target=self._maintenance_loop,
                args=(self.clock.now() + self.interval,),
                daemon=True,
                name="MaintenanceController"
            )
            self._thread.start()

        logger.info(f"Maintenance started (interval={self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Stop the schedule and wait for the thread

        An in-flight cycle finishes its current generation and then stops.

        Args:
            timeout: Seconds to wait for the thread (None waits indefinitely)

        Returns:
            True if the thread has terminated
        """
        with self._lifecycle_lock:
            self._stop_event.set()
            thread = self._thread
            if thread is None:
                return True
            thread.join(timeout)
            stopped = not thread.is_alive()
            if stopped:
                self._thread = None

        if stopped:
            logger.info("Maintenance stopped")
        else:
            logger.warning(f"Maintenance thread still running after {timeout}s")
        return stopped

    def _maintenance_loop(self, next_run: float):
        while not self.clock.wait(self._stop_event, next_run - self.clock.now()):
            self.run_cycle()
            next_run += self.interval
