"""
Ollama-backed generative tools for variant evolution
"""

from .ollama_manager import OllamaManager
from .generative_operator import (
    GenerativeOperator,
    OllamaGenerativeOperator,
    TemplateSplicingOperator
)

__all__ = [
    'OllamaManager',
    'GenerativeOperator',
    'OllamaGenerativeOperator',
    'TemplateSplicingOperator'
]
