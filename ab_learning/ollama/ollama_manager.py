"""
Ollama Manager
Pooled HTTP connection to an Ollama server with retries and statistics
"""

import logging
import threading
import time
from datetime import datetime
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..core.exceptions import GenerationError
from ..core.utils.retry_handler import RetryConfig, RetryHandler
from .ollama_request import build_messages, call_ollama_chat, get_model_names

logger = logging.getLogger(__name__)


class OllamaManager:
    """
    Ollama client used by the generative operators

    Features:
    - Connection pooling
    - Retry with backoff around each generation
    - Health check against the model list
    - Request statistics
    """

    RETRYABLE_EXCEPTIONS = (requests.ConnectionError, requests.Timeout, requests.HTTPError)

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen2.5-coder:1.5b",
        timeout: int = 120,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Ollama manager

        Args:
            base_url: Ollama server URL
            model: Model name to use
            timeout: Request timeout in seconds
            retry_config: Backoff policy for failed requests
            session: Preconfigured session (a pooled one is created if None)
        """
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.retry_handler = RetryHandler(retry_config or RetryConfig(
            retryable_exceptions=self.RETRYABLE_EXCEPTIONS
        ))

        self.last_check: Optional[datetime] = None
        self.lock = threading.Lock()
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0
        }

        if session is not None:
            self.session = session
        else:
            self.session = requests.Session()
            retry_strategy = Retry(
                total=1,  # Backoff is handled by RetryHandler
                backoff_factor=0.1,
                status_forcelist=[429, 500, 502, 503, 504],
            )
            adapter = HTTPAdapter(
                max_retries=retry_strategy,
                pool_connections=10,
                pool_maxsize=10,
                pool_block=False
            )
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def is_available(self) -> bool:
        """Check that the server answers and has the configured model"""
        try:
            names = get_model_names(self.session, self.base_url)
        except requests.RequestException as e:
            logger.debug(f"Ollama availability check failed: {e}")
            return False

        self.last_check = datetime.now()
        base = self.model.split(':')[0]
        available = any(name == self.model or name.split(':')[0] == base for name in names)
        if not available:
            logger.warning(f"Model '{self.model}' not found in Ollama. Available models: {', '.join(names[:5])}")
        return available

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000
    ) -> str:
        """
        Generate text using Ollama

        Args:
            prompt: User prompt
            system_prompt: System prompt (optional)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text

        Raises:
            GenerationError: All attempts failed or the model replied with nothing
        """
        with self.lock:
            self.stats['total_requests'] += 1

        messages = build_messages(prompt, system_prompt)
        request_start_time = time.time()

        def on_retry(attempt: int, error: BaseException):
            logger.warning(f"Ollama request failed (attempt {attempt + 1}): {type(error).__name__}: {str(error)[:200]}")

        try:
            generated_text = self.retry_handler.execute_with_retry(
                call_ollama_chat,
                self.session, self.base_url, self.model, messages,
                temperature, max_tokens, self.timeout,
                on_retry=on_retry
            )
        except requests.RequestException as e:
            with self.lock:
                self.stats['failed_requests'] += 1
            raise GenerationError(f"Ollama generation failed: {e}") from e

        if not generated_text:
            with self.lock:
                self.stats['failed_requests'] += 1
            raise GenerationError("Ollama returned an empty response")

        with self.lock:
            self.stats['successful_requests'] += 1

        elapsed = time.time() - request_start_time
        if elapsed > 30:
            logger.info(f"Ollama generated {len(generated_text)} chars in {int(elapsed)}s")
        return generated_text

    def get_stats(self) -> Dict:
        with self.lock:
            return {
                **self.stats,
                'model': self.model,
                'base_url': self.base_url,
                'last_check': self.last_check.isoformat() if self.last_check else None,
                'retry': self.retry_handler.get_stats()
            }

    def close(self):
        self.session.close()
