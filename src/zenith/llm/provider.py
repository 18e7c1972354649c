"""Language-model provider interface consumed by the orchestrator.

``LLMProvider`` is the minimal contract; ``ChatLLMProvider`` implements it on
top of ``call_llm`` so any supported vendor is a drop-in replacement.
"""

import logging
from abc import ABC, abstractmethod

from zenith.errors import LLMError
from zenith.llm.prompts import (
    build_explain_messages,
    build_query_messages,
    build_recommendation_messages,
    clean_generated_query,
)
from zenith.llm.router import call_llm

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """Prompt-in, text-out collaborator. All methods raise ``LLMError`` on failure."""

    name: str = "base"

    @abstractmethod
    def generate_query(self, question: str) -> str:
        """Translate a question into a query, optionally prefixed ``METRIC:``/``LOG:``."""
        ...

    @abstractmethod
    def explain_results(self, question: str, query: str, results: str) -> str:
        """Narrate query results as an answer to the question."""
        ...

    @abstractmethod
    def generate_recommendations(self, summary: str) -> str:
        """Turn a telemetry summary into performance recommendations."""
        ...


class ChatLLMProvider(LLMProvider):
    """Provider backed by a chat-completion model via the LLM router."""

    def __init__(
        self,
        provider: str = "ollama",
        *,
        model: str | None = None,
        store_flavor: str = "victoria",
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: int = 120,
    ):
        self.name = provider
        self.model = model
        self.store_flavor = store_flavor
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout

    def _chat(self, messages: list[dict[str, str]], role: str) -> str:
        text = call_llm(
            messages,
            role=role,
            provider=self.name,
            model=self.model,
            timeout=self.timeout,
            base_url=self.base_url,
            api_key=self.api_key,
        )
        if not text or not text.strip():
            raise LLMError(f"empty response from {self.name} ({role})", provider=self.name)
        return text

    def generate_query(self, question: str) -> str:
        raw = self._chat(build_query_messages(question, self.store_flavor), "query")
        query = clean_generated_query(raw)
        if not query:
            raise LLMError(f"{self.name} returned no query", provider=self.name)
        logger.debug("Generated query: %s", query)
        return query

    def explain_results(self, question: str, query: str, results: str) -> str:
        return self._chat(build_explain_messages(question, query, results), "narrator").strip()

    def generate_recommendations(self, summary: str) -> str:
        return self._chat(build_recommendation_messages(summary), "advisor").strip()
