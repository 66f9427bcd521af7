"""Chat-completion backends used by the area classifier."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
from openai import OpenAI

from .config import LLMConfig

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class LLMClient(ABC):
    """Turns a single-prompt request into the model's trimmed answer."""

    @abstractmethod
    def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        pass


def _chat_request(model: str, prompt: str, max_tokens: int, temperature: float) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
        "temperature": temperature,
    }


class OpenAIChatClient(LLMClient):
    """Through the openai SDK; ``base_url`` also points it at compatible servers."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.client = OpenAI(api_key=config.api_key, base_url=config.base_url or None)

    def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        try:
            response = self.client.chat.completions.create(
                **_chat_request(self.config.model, prompt, max_tokens, temperature)
            )
        except Exception as e:
            logger.error(f"Chat completion via {self.config.model} failed: {e}")
            raise
        return (response.choices[0].message.content or "").strip()


class HTTPChatClient(LLMClient):
    """Posts to ``<base_url>/chat/completions`` with a plain requests session."""

    def __init__(self, config: LLMConfig, session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.config = config
        self.url = f"{(config.base_url or DEFAULT_BASE_URL).rstrip('/')}/chat/completions"
        self.session = session or requests.Session()
        self.timeout = timeout

    def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        try:
            response = self.session.post(
                self.url,
                json=_chat_request(self.config.model, prompt, max_tokens, temperature),
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            answer = response.json()["choices"][0]["message"]["content"]
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            logger.error(f"Chat completion at {self.url} failed: {e}")
            raise
        return (answer or "").strip()


def create_llm_client(config: LLMConfig) -> LLMClient:
    """``LLM_PROVIDER=openai`` uses the SDK; anything else goes over plain HTTP."""
    if config.provider == "openai":
        return OpenAIChatClient(config)
    return HTTPChatClient(config)
