"""Language-model providers for query generation, narration and recommendations."""

from zenith.llm.provider import ChatLLMProvider, LLMProvider

__all__ = ["ChatLLMProvider", "LLMProvider", "create_provider"]


def create_provider(config) -> LLMProvider:
    """Build the provider selected by ``config.llm_provider``."""
    return ChatLLMProvider(
        config.llm_provider,
        model=config.llm_model,
        store_flavor=config.store_backend,
        base_url=config.ollama_url,
        api_key=config.gemini_api_key if config.llm_provider == "gemini" else None,
    )
