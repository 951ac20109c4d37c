"""
Ollama Request Helpers
Message building and the raw /api/chat call
"""

import logging
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


def build_messages(prompt: str, system_prompt: Optional[str] = None) -> List[Dict]:
    """Chat messages for a single-turn request"""
    messages = []
    if system_prompt:
        messages.append({
            'role': 'system',
            'content': system_prompt
        })
    messages.append({
        'role': 'user',
        'content': prompt
    })
    return messages


def call_ollama_chat(
    session: requests.Session,
    base_url: str,
    model: str,
    messages: List[Dict],
    temperature: float,
    max_tokens: int,
    timeout: int
) -> Optional[str]:
    """
    Call Ollama's chat endpoint

    Args:
        session: requests.Session object
        base_url: Ollama base URL
        model: Model name
        messages: List of message dicts
        temperature: Sampling temperature
        max_tokens: Maximum tokens
        timeout: Request timeout

    Returns:
        Generated text, or None for an empty reply

    Raises:
        requests.RequestException: Transport failure or non-2xx status
    """
    response = session.post(
        f"{base_url}/api/chat",
        json={
            'model': model,
            'messages': messages,
            'options': {
                'temperature': temperature,
                'num_predict': max_tokens
            },
            'stream': False
        },
        timeout=timeout
    )
    response.raise_for_status()

    result = response.json()
    content = result.get('message', {}).get('content', '').strip()
    return content or None


def get_model_names(session: requests.Session, base_url: str, timeout: int = 5) -> List[str]:
    """Names of the models the Ollama server has pulled"""
    response = session.get(f"{base_url}/api/tags", timeout=timeout)
    response.raise_for_status()
    return [m.get('name', '') for m in response.json().get('models', [])]
