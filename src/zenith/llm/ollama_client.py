"""Ollama client wrapper for local LLM inference.

Thin wrapper around the Ollama chat API with transport-level retries
(connection errors, timeouts, 5xx). Model-level mistakes are handled by the
query orchestrator, not here.
"""

import os
import time

import requests

from zenith.errors import LLMError

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "phi4-mini"


def ollama_chat(
    messages: list[dict[str, str]],
    *,
    model: str,
    base_url: str | None = None,
    temperature: float = 0.0,
    max_tokens: int | None = None,
    timeout: int = 300,
) -> str:
    """Call Ollama API with messages.

    Args:
        messages: List of message dicts with 'role' and 'content'
        model: Ollama model name (e.g. phi4-mini, gemma2:2b)
        base_url: Ollama base URL (default: ZENITH_OLLAMA_URL or localhost:11434)
        temperature: Temperature for sampling (default: 0 for deterministic)
        max_tokens: Maximum tokens in response (Ollama calls it num_predict)
        timeout: Request timeout in seconds

    Returns:
        Response text content

    Raises:
        LLMError: If the Ollama API call fails after retries
    """
    base_url = (base_url or os.environ.get("ZENITH_OLLAMA_URL", DEFAULT_OLLAMA_URL)).rstrip("/")
    max_retries = int(os.environ.get("ZENITH_OLLAMA_RETRIES", "2"))

    endpoint = f"{base_url}/api/chat"

    payload = {
        "model": model,
        "messages": messages,
        "stream": False,
        "options": {
            "temperature": temperature,
            "num_ctx": int(os.environ.get("ZENITH_OLLAMA_NUM_CTX", "8192")),
        },
    }
    if max_tokens is not None:
        payload["options"]["num_predict"] = max_tokens

    last_error: Exception | None = None
    for attempt in range(max_retries + 1):
        response = None
        try:
            response = requests.post(endpoint, json=payload, timeout=timeout)
            response.raise_for_status()

            result = response.json()
            if result.get("error"):
                raise LLMError(f"ollama error: {result['error']}", provider="ollama")
            if "message" not in result or "content" not in result["message"]:
                raise LLMError(f"Unexpected Ollama response format: {result}", provider="ollama")

            return result["message"]["content"]

        except requests.exceptions.ConnectionError as e:
            last_error = e
            if attempt < max_retries:
                time.sleep(0.5 * (2 ** attempt))
                continue
            raise LLMError(
                f"Cannot connect to Ollama at {base_url}. Ensure Ollama is running (ollama serve).",
                provider="ollama",
            ) from e

        except requests.exceptions.Timeout as e:
            last_error = e
            if attempt < max_retries:
                time.sleep(0.5 * (2 ** attempt))
                continue
            raise LLMError(
                f"Ollama request timed out after {timeout}s (model: {model})",
                provider="ollama",
            ) from e

        except requests.exceptions.HTTPError as e:
            last_error = e
            status = response.status_code if response is not None else 0
            if 500 <= status < 600 and attempt < max_retries:
                time.sleep(0.5 * (2 ** attempt))
                continue
            body = response.text if response is not None else ""
            raise LLMError(f"ollama API error ({status}): {body}", provider="ollama") from e

        except ValueError as e:
            raise LLMError(f"Ollama returned invalid JSON: {e}", provider="ollama") from e

    raise LLMError(f"Failed after {max_retries} retries. Last error: {last_error}", provider="ollama")
