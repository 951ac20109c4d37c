"""
Genetic Algorithm for Prompt Evolution
Breeds new variants from the best-performing ones through crossover and mutation
"""

import logging
import threading
from typing import List, Optional

from ..core.exceptions import InvalidArgument
from ..storage.posterior_store import PosteriorStore
from ..storage.variant_storage import Variant, VariantStorage
from .bayesian_sampler import BayesianSampler

logger = logging.getLogger(__name__)


class PromptEvolutionEngine:
    """
    Genetic algorithm engine for evolving prompt variants

    Uses tournament selection over the top performers, delegates crossover
    and mutation to a generative operator, and registers offspring as new
    variants one generation below their first parent.

    The breeding pool is fixed for the whole evolve() call: offspring start
    with no trials and never re-enter the pool within the same call.
    """

    def __init__(
        self,
        storage: VariantStorage,
        posterior_store: PosteriorStore,
        generator,
        sampler: BayesianSampler,
        mutation_rate: float = 0.2,
        tournament_size: int = 3,
        min_trials_before_exploitation: int = 10
    ):
        """
        Initialize evolution engine

        Args:
            storage: Variant storage (population source and offspring sink)
            posterior_store: Source of average rewards for tournaments
            generator: Object with crossover(a, b) and mutate(content)
            sampler: Random source for tournaments and mutation coin flips
            mutation_rate: Probability of mutating an offspring (0-1)
            tournament_size: Contestants per tournament
            min_trials_before_exploitation: Trials a variant needs to breed
        """
        if not 0.0 <= mutation_rate <= 1.0:
            raise InvalidArgument(f"mutation_rate must be in [0, 1], got {mutation_rate}")
        if tournament_size < 1:
            raise InvalidArgument(f"tournament_size must be at least 1, got {tournament_size}")

        self.storage = storage
        self.posterior_store = posterior_store
        self.generator = generator
        self.sampler = sampler
        self.mutation_rate = mutation_rate
        self.tournament_size = tournament_size
        self.min_trials_before_exploitation = min_trials_before_exploitation

        self.stats = {
            'offspring_created': 0,
            'mutations_applied': 0,
            'failed_generations': 0
        }

    def get_population(self, population_size: int) -> List[Variant]:
        """Top variants by average reward that have enough trials"""
        return self.storage.get_top_variants(population_size, self.min_trials_before_exploitation)

    def select_parents(self, population: List[Variant], num_parents: int = 2) -> List[Variant]:
        """
        Select parents using tournament selection

        Contestants are drawn with replacement; the one with the highest
        average reward wins (earliest drawn on ties).

        Args:
            population: Breeding pool
            num_parents: Number of parents to select

        Returns:
            List of parent variants
        """
        if not population:
            return []

        parents = []
        for _ in range(num_parents):
            tournament = [
                population[self.sampler.randint(len(population))]
                for _ in range(self.tournament_size)
            ]
            winner = tournament[0]
            best_reward = self.posterior_store.get(winner.id).avg_reward
            for contestant in tournament[1:]:
                reward = self.posterior_store.get(contestant.id).avg_reward
                if reward > best_reward:
                    winner, best_reward = contestant, reward
            parents.append(winner)

        return parents

    def breed(self, parents: List[Variant]) -> Variant:
        """
        Produce and register one offspring from two parents

        Raises:
            Whatever the generative operator raises; nothing is stored then.
        """
        offspring = self.generator.crossover(parents[0].template, parents[1].template)

        if self.sampler.uniform() < self.mutation_rate:
            offspring = self.generator.mutate(offspring)
            self.stats['mutations_applied'] += 1

        child = self.storage.create_variant(
            offspring,
            parent_id=parents[0].id,
            generation=parents[0].generation + 1
        )
        self.stats['offspring_created'] += 1
        return child

    def evolve(
        self,
        population_size: int = 5,
        generations: int = 3,
        cancel_event: Optional[threading.Event] = None
    ) -> List[str]:
        """
        Evolve new variants

        Args:
            population_size: Size of the breeding pool
            generations: Number of offspring to attempt
            cancel_event: When set, stops before the next generation

        Returns:
            Ids of the variants created, in creation order
        """
        if population_size <= 0 or generations < 0:
            raise InvalidArgument(
                f"population_size must be positive and generations non-negative, "
                f"got {population_size}, {generations}"
            )

        population = self.get_population(population_size)
        if not population:
            logger.warning(
                f"No variants with at least {self.min_trials_before_exploitation} trials, nothing to evolve"
            )
            return []

        logger.info(f"Evolving {generations} generations from a population of {len(population)}")

        new_variants = []
        for gen in range(generations):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Evolution cancelled after {gen} generations")
                break

            parents = self.select_parents(population, 2)
            try:
                child = self.breed(parents)
            except Exception as e:
                self.stats['failed_generations'] += 1
                logger.warning(f"Generation {gen + 1}/{generations} failed: {type(e).__name__}: {e}")
                continue

            new_variants.append(child.id)
            logger.debug(f"Generation {gen + 1}: {child.id} (gen {child.generation}) from {parents[0].id}")

        logger.info(f"Evolved {len(new_variants)} new variants")
        return new_variants

    def get_population_stats(self, population_size: int = 5) -> dict:
        """Statistics about the current breeding pool"""
        population = self.get_population(population_size)
        if not population:
            return {'population_size': 0}

        rewards = [self.posterior_store.get(v.id).avg_reward for v in population]
        return {
            'population_size': len(population),
            'avg_reward': sum(rewards) / len(rewards),
            'max_reward': max(rewards),
            'max_generation': max(v.generation for v in population),
            **self.stats
        }
