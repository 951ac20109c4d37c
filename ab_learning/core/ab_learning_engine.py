"""
A/B Learning Engine
Facade that wires storage, selection, evaluation, evolution and maintenance
"""

import hashlib
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from ..evolution.ab_evaluator import ABTestResult, StatisticalEvaluator
from ..evolution.advanced_bandits import (
    AdaptiveExplorationScheduler,
    ContextualBanditSelector,
    ThompsonSamplingSelector,
    validate_candidates
)
from ..evolution.bayesian_sampler import BayesianSampler
from ..evolution.maintenance_controller import MaintenanceController
from ..evolution.preference_learner import PreferenceUpdater
from ..evolution.prompt_evolution_engine import PromptEvolutionEngine
from ..ollama.generative_operator import (
    GenerativeOperator,
    OllamaGenerativeOperator,
    TemplateSplicingOperator
)
from ..ollama.ollama_manager import OllamaManager
from ..storage.posterior_store import PosteriorStore
from ..storage.variant_storage import (
    ContextualObservation,
    ExperimentAssignment,
    FeedbackEvent,
    Variant,
    VariantStorage
)
from .config.config_manager import ConfigManager
from .exceptions import InvalidArgument
from .recorder.audit_logger import AuditLogger
from .recorder.decision_recorder import DecisionRecorder
from .strategies import (
    BinaryRewardFunction,
    ContextExtractor,
    HashingContextExtractor,
    RewardFunction
)
from .utils.clock import Clock
from .utils.retry_handler import RetryConfig

logger = logging.getLogger(__name__)


class ABLearningEngine:
    """
    Self-tuning variant selection engine

    Callers register variants, ask for a variant per task, and report
    outcomes. Posteriors learn from feedback and pairwise preferences, and a
    background maintenance cycle prunes losers and breeds new variants.

    Long-running work (A/B evaluation, evolution) can be submitted to the
    engine's worker pool so it never runs on the caller's thread.
    """

    # Settings applied to running components when the config changes:
    # (section, key) -> (component attribute, field, accepted values).
    # Other keys are read once at construction.
    LIVE_SETTINGS = {
        ('preference', 'boost'): ('preferences', 'boost', lambda v: v > 0),
        ('evaluation', 'n_trials'): ('evaluator', 'n_trials', lambda v: v > 0),
        ('evaluation', 'confidence_threshold'): ('evaluator', 'confidence_threshold', lambda v: 0 <= v <= 1),
        ('evolution', 'mutation_rate'): ('evolution', 'mutation_rate', lambda v: 0 <= v <= 1),
        ('evolution', 'tournament_size'): ('evolution', 'tournament_size', lambda v: v >= 1),
        ('bandits', 'min_trials_before_exploitation'): ('evolution', 'min_trials_before_exploitation', lambda v: v >= 0),
        ('bandits', 'min_exploration'): ('exploration', 'min_exploration', lambda v: v >= 0),
        ('bandits', 'exploration_decay'): ('exploration', 'decay_rate', lambda v: 0 < v <= 1),
        ('maintenance', 'interval_seconds'): ('maintenance', 'interval', lambda v: v > 0),
        ('maintenance', 'prune_min_trials'): ('maintenance', 'prune_min_trials', lambda v: v >= 0),
        ('maintenance', 'prune_max_win_rate'): ('maintenance', 'prune_max_win_rate', lambda v: 0 <= v <= 1),
        ('maintenance', 'population_size'): ('maintenance', 'population_size', lambda v: v > 0),
        ('maintenance', 'generations'): ('maintenance', 'generations', lambda v: v >= 0),
    }

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        db_path: Optional[str] = None,
        generator: Optional[GenerativeOperator] = None,
        sampler: Optional[BayesianSampler] = None,
        clock: Optional[Clock] = None,
        recorder: Optional[DecisionRecorder] = None,
        reward_function: Optional[RewardFunction] = None,
        context_extractor: Optional[ContextExtractor] = None,
        max_workers: int = 2
    ):
        """
        Initialize the engine

        Args:
            config: Configuration (defaults if None)
            db_path: Overrides storage.db_path from the config
            generator: Crossover/mutation operator (built from the
                generation section if None)
            sampler: Random source (seeded from bandits.seed if None)
            clock: Time source for the maintenance schedule
            recorder: Decision recorder (built from the recording section
                if None and recording is enabled)
            reward_function: Maps outcomes to rewards for record_outcome
            context_extractor: Maps context strings to feature vectors
            max_workers: Worker threads for submitted evaluations/evolutions
        """
        self.config = config or ConfigManager()
        cfg = self.config

        self.storage = VariantStorage(db_path or cfg.get('storage', 'db_path', '.ab_learning/ab_learning.db'))
        self.posterior_store = PosteriorStore(self.storage)
        self.sampler = sampler or BayesianSampler(seed=cfg.get('bandits', 'seed'))

        if recorder is None and cfg.get('recording', 'enabled', False):
            recorder = DecisionRecorder(cfg.get('recording', 'storage_path', '.ab_learning/decisions.db'))
        self.recorder = recorder
        self.audit = AuditLogger(recorder)
        self.config.add_listener(self.audit.log_config_change)

        self.reward_function = reward_function or BinaryRewardFunction()
        self.context_extractor = context_extractor or HashingContextExtractor()

        self.exploration = AdaptiveExplorationScheduler(
            initial_exploration=cfg.get('bandits', 'initial_exploration', 0.3),
            min_exploration=cfg.get('bandits', 'min_exploration', 0.05),
            decay_rate=cfg.get('bandits', 'exploration_decay', 0.95)
        )
        self.thompson = ThompsonSamplingSelector(self.posterior_store, self.sampler)
        self.contextual = ContextualBanditSelector(self.exploration)
        self.evaluator = StatisticalEvaluator(
            self.posterior_store,
            self.sampler,
            n_trials=cfg.get('evaluation', 'n_trials', 10000),
            confidence_threshold=cfg.get('evaluation', 'confidence_threshold', 0.95)
        )
        self.preferences = PreferenceUpdater(
            self.storage,
            self.posterior_store,
            boost=cfg.get('preference', 'boost', 0.1)
        )

        self._ollama: Optional[OllamaManager] = None
        self.generator = generator or self._build_generator()
        self.evolution = PromptEvolutionEngine(
            self.storage,
            self.posterior_store,
            self.generator,
            self.sampler,
            mutation_rate=cfg.get('evolution', 'mutation_rate', 0.2),
            tournament_size=cfg.get('evolution', 'tournament_size', 3),
            min_trials_before_exploitation=cfg.get('bandits', 'min_trials_before_exploitation', 10)
        )
        self.maintenance = MaintenanceController(
            self.storage,
            self.posterior_store,
            self.evolution,
            self.exploration,
            interval=cfg.get('maintenance', 'interval_seconds', 3600),
            clock=clock,
            prune_min_trials=cfg.get('maintenance', 'prune_min_trials', 20),
            prune_max_win_rate=cfg.get('maintenance', 'prune_max_win_rate', 0.05),
            population_size=cfg.get('maintenance', 'population_size', 5),
            generations=cfg.get('maintenance', 'generations', 2)
        )
        self.maintenance.add_listener(self._audit_cycle)
        self.config.add_listener(self._apply_config_change)

        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ab-learning")
        self._closed = False

        logger.info(f"A/B learning engine ready (storage={self.storage.db_path})")

    def _build_generator(self) -> GenerativeOperator:
        cfg = self.config
        if not cfg.get('generation', 'use_ollama', False):
            return TemplateSplicingOperator(self.sampler)

        retry_config = replace(
            RetryConfig.from_dict(cfg.get_section('retry').data),
            retryable_exceptions=OllamaManager.RETRYABLE_EXCEPTIONS
        )
        self._ollama = OllamaManager(
            base_url=cfg.get('generation', 'base_url', 'http://localhost:11434'),
            model=cfg.get('generation', 'model', 'qwen2.5-coder:1.5b'),
            timeout=cfg.get('generation', 'timeout', 120),
            retry_config=retry_config
        )
        if not self._ollama.is_available():
            logger.warning("Ollama is not reachable; evolution steps will fail until it is")
        return OllamaGenerativeOperator(
            self._ollama,
            temperature=cfg.get('generation', 'temperature', 0.7),
            max_tokens=cfg.get('generation', 'max_tokens', 1000)
        )

    # ------------------------------------------------------------------
    # Variants and feedback
    # ------------------------------------------------------------------

    def create_variant(self, template: str, parent_id: Optional[str] = None, generation: int = 0) -> str:
        """Register a variant with a Beta(1, 1) prior and return its id"""
        if generation < 0:
            raise InvalidArgument(f"generation must be non-negative, got {generation}")
        variant = self.storage.create_variant(template, parent_id=parent_id, generation=generation)
        logger.info(f"Created variant {variant.id} (gen {generation})")
        return variant.id

    def record_feedback(
        self,
        task_id: str,
        variant_id: str,
        reward: float,
        latency_ms: float,
        token_cost: float,
        success: bool,
        timestamp: Optional[float] = None
    ):
        """Fold one observed outcome into the variant's posterior"""
        event = FeedbackEvent(
            task_id=task_id,
            variant_id=variant_id,
            reward=float(reward),
            latency_ms=float(latency_ms),
            token_cost=float(token_cost),
            success=bool(success),
            timestamp=timestamp if timestamp is not None else time.time()
        )
        posterior = self.posterior_store.apply_feedback(event)

        self.audit.log_decision(
            'feedback',
            {'task_id': task_id, 'variant_id': variant_id},
            {'reward': event.reward, 'latency_ms': event.latency_ms, 'token_cost': event.token_cost},
            result=posterior.to_dict(),
            success=event.success
        )

    def record_outcome(
        self,
        task_id: str,
        variant_id: str,
        success: bool,
        latency_ms: float = 0.0,
        token_cost: float = 0.0
    ) -> float:
        """
        Record feedback with the reward computed by the reward function

        Returns:
            The reward that was recorded
        """
        reward = self.reward_function.compute(success, latency_ms, token_cost)
        self.record_feedback(task_id, variant_id, reward, latency_ms, token_cost, success)
        return reward

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def thompson_sample(self, candidate_ids: Sequence[str]) -> str:
        """Pick the candidate with the highest Beta posterior draw"""
        selected = self.thompson.select(candidate_ids)
        self.audit.log_decision(
            'selection',
            {'candidates': list(candidate_ids), 'policy': 'thompson'},
            {},
            result={'selected': selected}
        )
        return selected

    def assign_variant(self, task_id: str, candidate_ids: Sequence[str], context: str = "") -> str:
        """Thompson selection persisted as the task's experiment assignment"""
        selected = self.thompson_sample(candidate_ids)
        self.storage.store_assignment(ExperimentAssignment(
            task_id=task_id,
            variant_id=selected,
            context=context,
            timestamp=time.time()
        ))
        return selected

    def get_assignment(self, task_id: str) -> Optional[ExperimentAssignment]:
        return self.storage.get_assignment(task_id)

    def contextual_select(self, candidate_ids: Sequence[str], features: Sequence[float]) -> str:
        """Pick a candidate with the LinUCB-shaped contextual score"""
        selected = self.contextual.select(candidate_ids, features)
        self.audit.log_decision(
            'selection',
            {'candidates': list(candidate_ids), 'policy': 'contextual'},
            {'exploration_rate': self.exploration.current_exploration},
            result={'selected': selected}
        )
        return selected

    def contextual_select_for(self, candidate_ids: Sequence[str], context: str) -> str:
        """contextual_select with features taken from the context extractor"""
        validate_candidates(candidate_ids)
        return self.contextual_select(candidate_ids, self.context_extractor.extract(context))

    def record_context_observation(self, variant_id: str, context: str, reward: float) -> ContextualObservation:
        """Store the features of a context together with the reward it earned"""
        observation = ContextualObservation(
            variant_id=variant_id,
            context_hash=hashlib.sha256(context.encode()).hexdigest()[:16],
            features=self.context_extractor.extract(context),
            reward=float(reward),
            timestamp=time.time()
        )
        self.storage.store_observation(observation)
        return observation

    # ------------------------------------------------------------------
    # Evaluation, evolution, preferences
    # ------------------------------------------------------------------

    def evaluate_ab_test(self, variant_a: str, variant_b: str) -> ABTestResult:
        """Monte-Carlo significance test between two variants"""
        result = self.evaluator.evaluate(variant_a, variant_b)
        self.audit.log_decision(
            'ab_test',
            {'variant_a': variant_a, 'variant_b': variant_b},
            {'n_trials': self.evaluator.n_trials, 'threshold': self.evaluator.confidence_threshold},
            result=result.to_dict()
        )
        return result

    def evolve_prompts(self, population_size: Optional[int] = None, generations: Optional[int] = None) -> List[str]:
        """Breed new variants from the best ones; returns the new ids"""
        if population_size is None:
            population_size = self.config.get('evolution', 'population_size', 5)
        if generations is None:
            generations = self.config.get('evolution', 'generations', 3)

        new_ids = self.evolution.evolve(population_size, generations)
        self.audit.log_decision(
            'evolution',
            {'population_size': population_size, 'generations': generations},
            {'mutation_rate': self.evolution.mutation_rate},
            result={'created': new_ids},
            success=len(new_ids) > 0
        )
        return new_ids

    def submit_evolution(self, population_size: Optional[int] = None, generations: Optional[int] = None) -> Future:
        """Run evolve_prompts on the worker pool"""
        return self.executor.submit(self.evolve_prompts, population_size, generations)

    def submit_ab_test(self, variant_a: str, variant_b: str) -> Future:
        """Run evaluate_ab_test on the worker pool"""
        return self.executor.submit(self.evaluate_ab_test, variant_a, variant_b)

    def record_preference(
        self,
        winner_id: str,
        loser_id: str,
        context: str = "",
        human_feedback: bool = False
    ):
        """Boost the winner's alpha and the loser's beta"""
        self.preferences.record_preference(winner_id, loser_id, context, human_feedback)
        self.audit.log_decision(
            'preference',
            {'winner_id': winner_id, 'loser_id': loser_id, 'context': context},
            {'boost': self.preferences.boost, 'human_feedback': human_feedback},
            success=True
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_variants(self) -> List[Variant]:
        """All variants, newest first"""
        return self.storage.get_all_variants()

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        return self.storage.get_variant(variant_id)

    def get_variant_stats(self, variant_id: str) -> Dict:
        """
        Posterior statistics for a variant id

        Unknown ids report their implicitly created posterior, or the
        default Beta(1, 1) prior; variant fields are None for them.
        """
        variant = self.storage.get_variant(variant_id)
        posterior = self.posterior_store.get(variant_id)
        return {
            'id': variant_id,
            'template': variant.template if variant else None,
            'parent_id': variant.parent_id if variant else None,
            'generation': variant.generation if variant else None,
            'created_at': variant.created_at if variant else None,
            **posterior.to_dict()
        }

    def get_feedback_history(self, variant_id: Optional[str] = None, limit: int = 1000) -> List[FeedbackEvent]:
        return self.storage.get_feedback(variant_id, limit)

    def get_statistics(self) -> Dict:
        return {
            **self.storage.get_statistics(),
            'exploration_rate': self.exploration.current_exploration,
            'total_selections': self.thompson.total_selections,
            'maintenance_running': self.maintenance.is_running,
            'maintenance_cycles': self.maintenance.cycles_run
        }

    @property
    def exploration_rate(self) -> float:
        return self.exploration.current_exploration

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_maintenance(self):
        self.maintenance.start()

    def stop_maintenance(self, timeout: Optional[float] = None) -> bool:
        return self.maintenance.stop(timeout)

    def _apply_config_change(self, section: str, key: str, old_value, new_value):
        """Push a changed setting into the component that uses it"""
        setting = self.LIVE_SETTINGS.get((section, key))
        if setting is None:
            logger.info(f"{section}.{key} changed; it takes effect on the next engine start")
            return

        component_name, field, accepts = setting
        try:
            valid = accepts(new_value)
        except TypeError:
            valid = False
        if not valid:
            logger.warning(f"Ignoring invalid value for {section}.{key}: {new_value!r}")
            return

        setattr(getattr(self, component_name), field, new_value)
        logger.info(f"Applied {section}.{key} = {new_value!r}")

    def _audit_cycle(self, report):
        self.audit.log_decision(
            'maintenance',
            {'started_at': report.started_at},
            {
                'prune_min_trials': self.maintenance.prune_min_trials,
                'prune_max_win_rate': self.maintenance.prune_max_win_rate
            },
            result={
                'pruned': report.pruned,
                'evolved': report.evolved,
                'exploration_rate': report.exploration_rate,
                'errors': report.errors
            },
            success=report.ok
        )

    def close(self, timeout: Optional[float] = None):
        """Stop maintenance, drain the worker pool and release storage"""
        if self._closed:
            return
        self._closed = True

        self.config.remove_listener(self.audit.log_config_change)
        self.config.remove_listener(self._apply_config_change)
        self.maintenance.stop(timeout)
        self.executor.shutdown(wait=True)
        if self._ollama is not None:
            self._ollama.close()
        if self.recorder is not None:
            self.recorder.close()
        self.storage.close()
        logger.info("A/B learning engine closed")

    def __enter__(self) -> 'ABLearningEngine':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
