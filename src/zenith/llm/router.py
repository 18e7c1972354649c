"""LLM router for dispatching chat calls to the configured provider.

Supported providers:
- ollama: Local models via Ollama (default)
- openai: GPT models via OpenAI API
- anthropic: Claude models via Anthropic API
- gemini: Gemini models via the Generative Language REST API

Environment variables:
- ZENITH_LLM_PROVIDER: Provider to use when none is passed explicitly
- ZENITH_OPENAI_API_KEY / OPENAI_API_KEY
- ZENITH_ANTHROPIC_API_KEY / ANTHROPIC_API_KEY
- ZENITH_GEMINI_API_KEY / GEMINI_API_KEY
- ZENITH_QUERY_MODEL, ZENITH_NARRATOR_MODEL, ZENITH_ADVISOR_MODEL: per-role model overrides
"""

import importlib
import importlib.util
import os
from typing import Any

import requests

from zenith.errors import LLMError
from zenith.llm.ollama_client import DEFAULT_OLLAMA_MODEL, ollama_chat

ROLES = ("query", "narrator", "advisor")

# Default models per provider
DEFAULT_MODELS = {
    "ollama": {
        "query": DEFAULT_OLLAMA_MODEL,
        "narrator": DEFAULT_OLLAMA_MODEL,
        "advisor": DEFAULT_OLLAMA_MODEL,
    },
    "openai": {
        "query": "gpt-4o",
        "narrator": "gpt-4o-mini",
        "advisor": "gpt-4o-mini",
    },
    "anthropic": {
        "query": "claude-3-5-sonnet-20241022",
        "narrator": "claude-3-5-haiku-20241022",
        "advisor": "claude-3-5-haiku-20241022",
    },
    "gemini": {
        "query": "gemini-1.5-flash",
        "narrator": "gemini-1.5-flash",
        "advisor": "gemini-1.5-flash",
    },
}

# Generation stays deterministic; narration gets a little room
ROLE_TEMPERATURES = {"query": 0.0, "narrator": 0.3, "advisor": 0.3}

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def _api_key(*names: str) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _split_system(messages: list[dict[str, str]]) -> tuple[str | None, list[dict[str, str]]]:
    system_content = None
    rest = []
    for msg in messages:
        if msg["role"] == "system":
            system_content = msg["content"]
        else:
            rest.append(msg)
    return system_content, rest


def _call_anthropic(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int | None,
    timeout: int,
    api_key: str | None = None,
) -> str:
    """Call Anthropic API (Claude models)."""
    try:
        anthropic = importlib.import_module("anthropic")
    except ImportError:
        raise LLMError(
            "anthropic package not installed. Install with: pip install zenith[anthropic]",
            provider="anthropic",
        ) from None

    api_key = api_key or _api_key("ZENITH_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY")
    if not api_key:
        raise LLMError(
            "Anthropic API key not found. Set ZENITH_ANTHROPIC_API_KEY or ANTHROPIC_API_KEY.",
            provider="anthropic",
        )

    client = anthropic.Anthropic(api_key=api_key, timeout=timeout)
    system_content, api_messages = _split_system(messages)
    try:
        response = client.messages.create(
            model=model,
            max_tokens=max_tokens or 4096,
            temperature=temperature,
            system=system_content or "You are Zenith, an AI expert in system performance.",
            messages=api_messages,
        )
    except Exception as e:
        raise LLMError(f"Anthropic API call failed: {e}", provider="anthropic") from e
    return "".join(getattr(block, "text", "") for block in response.content)


def _call_openai(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int | None,
    timeout: int,
    api_key: str | None = None,
) -> str:
    """Call OpenAI API (GPT models)."""
    try:
        openai_module = importlib.import_module("openai")
    except ImportError:
        raise LLMError(
            "openai package not installed. Install with: pip install zenith[openai]",
            provider="openai",
        ) from None

    api_key = api_key or _api_key("ZENITH_OPENAI_API_KEY", "OPENAI_API_KEY")
    if not api_key:
        raise LLMError(
            "OpenAI API key not found. Set ZENITH_OPENAI_API_KEY or OPENAI_API_KEY.",
            provider="openai",
        )

    client = openai_module.OpenAI(api_key=api_key, timeout=timeout)
    try:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens or 4096,
        )
    except Exception as e:
        raise LLMError(f"OpenAI API call failed: {e}", provider="openai") from e
    return response.choices[0].message.content or ""


def _call_gemini(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int | None,
    timeout: int,
    api_key: str | None = None,
) -> str:
    """Call the Gemini generateContent REST endpoint."""
    api_key = api_key or _api_key("ZENITH_GEMINI_API_KEY", "GEMINI_API_KEY")
    if not api_key:
        raise LLMError(
            "Gemini API key not found. Set ZENITH_GEMINI_API_KEY or GEMINI_API_KEY.",
            provider="gemini",
        )

    system_content, chat_messages = _split_system(messages)
    payload: dict[str, Any] = {
        "contents": [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in chat_messages
        ],
        "generationConfig": {"temperature": temperature},
    }
    if system_content:
        payload["systemInstruction"] = {"parts": [{"text": system_content}]}
    if max_tokens is not None:
        payload["generationConfig"]["maxOutputTokens"] = max_tokens

    try:
        response = requests.post(
            GEMINI_ENDPOINT.format(model=model),
            params={"key": api_key},
            json=payload,
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        raise LLMError(f"Gemini request failed: {e}", provider="gemini") from e
    if response.status_code != 200:
        raise LLMError(f"Gemini API error ({response.status_code}): {response.text}", provider="gemini")

    candidates = response.json().get("candidates") or []
    if not candidates:
        raise LLMError("no response from Gemini", provider="gemini")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


def call_llm(
    messages: list[dict[str, str]],
    *,
    role: str = "query",
    provider: str | None = None,
    model: str | None = None,
    max_tokens: int | None = None,
    timeout: int = 120,
    base_url: str | None = None,
    api_key: str | None = None,
) -> str:
    """Route an LLM call to the model configured for ``role``.

    Args:
        messages: List of message dicts with 'role' and 'content'
        role: One of 'query', 'narrator' or 'advisor'
        provider: Provider override (default: ZENITH_LLM_PROVIDER or ollama)
        model: Model override for this call
        max_tokens: Maximum tokens in response (optional)
        timeout: Request timeout in seconds
        base_url: Ollama base URL override
        api_key: API key override for hosted providers

    Returns:
        Response text content

    Raises:
        LLMError: If role/provider is invalid or the call fails
    """
    resolved_provider = (provider or os.environ.get("ZENITH_LLM_PROVIDER", "ollama")).lower()

    if role not in ROLES:
        raise LLMError(f"Invalid role: {role}. Must be one of: {', '.join(ROLES)}")
    if resolved_provider not in DEFAULT_MODELS:
        raise LLMError(
            f"Unsupported LLM provider: {resolved_provider}. "
            f"Supported: {', '.join(DEFAULT_MODELS)}"
        )

    role_model = model or os.environ.get(
        f"ZENITH_{role.upper()}_MODEL", DEFAULT_MODELS[resolved_provider][role]
    )
    temperature = ROLE_TEMPERATURES[role]

    if resolved_provider == "anthropic":
        return _call_anthropic(messages, role_model, temperature, max_tokens, timeout, api_key)
    if resolved_provider == "openai":
        return _call_openai(messages, role_model, temperature, max_tokens, timeout, api_key)
    if resolved_provider == "gemini":
        return _call_gemini(messages, role_model, temperature, max_tokens, timeout, api_key)
    return ollama_chat(
        messages,
        model=role_model,
        base_url=base_url,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )


def _has_module(module_name: str) -> bool:
    """Return True when a module is installed in the current environment."""
    return importlib.util.find_spec(module_name) is not None


def get_available_providers() -> list[str]:
    """Get list of available LLM providers based on installed packages and API keys."""
    available = ["ollama"]  # Always available

    if _has_module("openai") and _api_key("ZENITH_OPENAI_API_KEY", "OPENAI_API_KEY"):
        available.append("openai")
    if _has_module("anthropic") and _api_key("ZENITH_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"):
        available.append("anthropic")
    if _api_key("ZENITH_GEMINI_API_KEY", "GEMINI_API_KEY"):
        available.append("gemini")

    return available
