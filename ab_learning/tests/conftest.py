"""
Pytest fixtures for the A/B learning test suite.
"""

import sys
from pathlib import Path
from typing import Generator, List, Tuple

import pytest

# Ensure ab_learning is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ab_learning.core.config import ConfigManager
from ab_learning.core.exceptions import GenerationError
from ab_learning.core.utils.clock import ManualClock
from ab_learning.evolution.bayesian_sampler import BayesianSampler
from ab_learning.ollama.generative_operator import GenerativeOperator
from ab_learning.storage import PerformancePosterior, PosteriorStore, VariantStorage


class StubGenerator(GenerativeOperator):
    """Deterministic generative operator that records its calls"""

    def __init__(self, fail_on: Tuple[int, ...] = ()):
        self.crossovers: List[Tuple[str, str]] = []
        self.mutations: List[str] = []
        self.fail_on = fail_on

    def crossover(self, content_a: str, content_b: str) -> str:
        self.crossovers.append((content_a, content_b))
        if len(self.crossovers) in self.fail_on:
            raise GenerationError(f"crossover {len(self.crossovers)} failed")
        return f"{content_a} + {content_b}"

    def mutate(self, content: str) -> str:
        self.mutations.append(content)
        return content + " (mutated)"


@pytest.fixture
def db_path(tmp_path) -> str:
    """Path to a fresh SQLite database."""
    return str(tmp_path / "ab_learning.db")


@pytest.fixture
def storage(db_path) -> Generator[VariantStorage, None, None]:
    """Variant storage backed by a temporary database."""
    store = VariantStorage(db_path)
    yield store
    store.close()


@pytest.fixture
def posterior_store(storage) -> PosteriorStore:
    return PosteriorStore(storage)


@pytest.fixture
def sampler() -> BayesianSampler:
    """Seeded sampler so randomized tests are reproducible."""
    return BayesianSampler(seed=12345)


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def stub_generator() -> StubGenerator:
    return StubGenerator()


@pytest.fixture
def set_posterior(storage):
    """Overwrite a variant's stored posterior with the given fields."""
    def _set(variant_id: str, **fields) -> PerformancePosterior:
        posterior = PerformancePosterior(variant_id=variant_id, **fields)
        storage.save_posterior(posterior)
        return posterior
    return _set


@pytest.fixture
def engine(db_path, stub_generator, sampler, manual_clock):
    """Engine wired to the stub generator, seeded sampler and manual clock."""
    from ab_learning import ABLearningEngine

    config = ConfigManager()
    config.set('evaluation', 'n_trials', 4000)
    eng = ABLearningEngine(
        config=config,
        db_path=db_path,
        generator=stub_generator,
        sampler=sampler,
        clock=manual_clock
    )
    yield eng
    eng.close(timeout=5)
