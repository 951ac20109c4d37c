"""
Generative operators for variant evolution
Crossover and mutation over opaque template content
"""

import logging
from typing import List, Optional

from ..core.exceptions import GenerationError
from ..evolution.bayesian_sampler import BayesianSampler
from .ollama_manager import OllamaManager

logger = logging.getLogger(__name__)

CROSSOVER_PROMPT = """Generate a new prompt that combines the best aspects of these two prompts:

Prompt A: {prompt_a}

Prompt B: {prompt_b}

Create a hybrid prompt that:
1. Takes the clearest instructions from both
2. Maintains the most effective phrasing
3. Preserves key constraints and requirements
4. Results in a prompt that could outperform both parents

Return ONLY the new hybrid prompt, no explanation."""

MUTATION_PROMPT = """Improve this prompt with a small random mutation:

{prompt}

Make ONE of these changes:
1. Rephrase for clarity
2. Add a helpful constraint
3. Remove redundancy
4. Adjust tone/style
5. Add example format

Return ONLY the mutated prompt, no explanation."""

SYSTEM_PROMPT = "You are an expert prompt engineer. Return only the requested prompt text."

DEFAULT_MUTATIONS = [
    ' Be concise.',
    ' Focus on performance.',
    ' Consider edge cases.',
    ' Use modern patterns.',
    ' Optimize for readability.'
]


class GenerativeOperator:
    """Produces new variant content from existing content; may be slow"""

    def crossover(self, content_a: str, content_b: str) -> str:
        raise NotImplementedError

    def mutate(self, content: str) -> str:
        raise NotImplementedError


class OllamaGenerativeOperator(GenerativeOperator):
    """LLM-backed crossover and mutation"""

    def __init__(self, manager: OllamaManager, temperature: float = 0.7, max_tokens: int = 1000):
        self.manager = manager
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _generate(self, prompt: str) -> str:
        text = self.manager.generate(
            prompt,
            system_prompt=SYSTEM_PROMPT,
            temperature=self.temperature,
            max_tokens=self.max_tokens
        )
        if not text or not text.strip():
            raise GenerationError("Generative backend returned no content")
        return text.strip()

    def crossover(self, content_a: str, content_b: str) -> str:
        return self._generate(CROSSOVER_PROMPT.format(prompt_a=content_a, prompt_b=content_b))

    def mutate(self, content: str) -> str:
        return self._generate(MUTATION_PROMPT.format(prompt=content))


class TemplateSplicingOperator(GenerativeOperator):
    """
    Offline operator

    Crossover appends the first line of B to A; mutation appends one hint
    drawn from a fixed list.
    """

    def __init__(self, sampler: Optional[BayesianSampler] = None, mutations: Optional[List[str]] = None):
        self.sampler = sampler or BayesianSampler()
        self.mutations = list(mutations or DEFAULT_MUTATIONS)

    def crossover(self, content_a: str, content_b: str) -> str:
        first_line = content_b.split('\n')[0]
        return f"{content_a}\n\nAdditionally: {first_line}"

    def mutate(self, content: str) -> str:
        return content + self.mutations[self.sampler.randint(len(self.mutations))]
