"""Runtime configuration for the Zenith server, collector and CLI.

Configuration is resolved in three layers:

1. Built-in defaults (``ZenithConfig`` field defaults)
2. Optional JSON config file (missing file means defaults)
3. ``ZENITH_*`` environment variables, e.g. ``ZENITH_LLM_PROVIDER=openai``
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, get_args, get_type_hints

from zenith.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "ZENITH_"
DEFAULT_CONFIG_PATH = Path("./zenith.json")
DEFAULT_INTERVAL = timedelta(minutes=5)

_INTERVAL_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smh])\s*$")
_INTERVAL_UNITS = {"s": 1, "m": 60, "h": 3600}

_SUPPORTED_PROVIDERS = {"ollama", "openai", "anthropic", "gemini"}
_SUPPORTED_BACKENDS = {"victoria", "duckdb"}


@dataclass
class ZenithConfig:
    """Settings consumed by ``zenith serve`` and ``zenith collect``."""

    server_host: str = "127.0.0.1"
    server_port: int = 8080

    # Telemetry backend
    store_backend: str = "victoria"
    metrics_url: str = "http://localhost:8428"
    logs_url: str = "http://localhost:9428"
    telemetry_db_path: str = "./data/telemetry.duckdb"

    # Language model
    llm_provider: str = "ollama"
    llm_model: str | None = None
    ollama_url: str = "http://localhost:11434"
    gemini_api_key: str | None = None

    # Orchestration and collection
    max_attempts: int = 3
    collect_interval: str = "5m"
    collect_enabled: bool = True
    top_processes: int = 10

    experience_db_path: str = "./data/experiences.duckdb"
    log_level: str = "INFO"

    def validate(self) -> "ZenithConfig":
        provider = self.llm_provider.strip().lower()
        if provider not in _SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"Unsupported llm_provider '{self.llm_provider}'. "
                f"Supported: {', '.join(sorted(_SUPPORTED_PROVIDERS))}"
            )
        backend = self.store_backend.strip().lower()
        if backend not in _SUPPORTED_BACKENDS:
            raise ConfigError(
                f"Unsupported store_backend '{self.store_backend}'. "
                f"Supported: {', '.join(sorted(_SUPPORTED_BACKENDS))}"
            )
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")
        self.llm_provider = provider
        self.store_backend = backend
        return self

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data.get("gemini_api_key"):
            data["gemini_api_key"] = "***"
        return data


def _coerce(raw: str, annotation: Any) -> Any:
    """Convert an environment string to the resolved type of a config field."""
    args = get_args(annotation)
    optional = type(None) in args
    base = next((a for a in args if a is not type(None)), annotation) if args else annotation
    if optional and raw.strip() == "":
        return None
    if base is bool:
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if base is int:
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigError(f"Expected an integer, got '{raw}'") from e
    return raw


def load_config(
    path: Path | str | None = None,
    *,
    environ: dict[str, str] | None = None,
) -> ZenithConfig:
    """Load configuration from an optional JSON file plus environment overrides.

    Args:
        path: JSON config path (default: ./zenith.json). A missing file is not an error.
        environ: Environment mapping (default: os.environ)

    Returns:
        Validated ZenithConfig

    Raises:
        ConfigError: If the file is not valid JSON, contains unknown keys,
            or the resulting values are invalid
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ
    known = {f.name for f in fields(ZenithConfig)}
    field_types = get_type_hints(ZenithConfig)

    values: dict[str, Any] = {}
    if config_path.exists():
        try:
            raw = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
        unknown = sorted(set(raw) - set(known))
        if unknown:
            raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")
        values.update(raw)
    else:
        logger.debug("Config file %s not found, using defaults", config_path)

    for name in known:
        env_value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            values[name] = _coerce(env_value, field_types[name])

    # Unprefixed key as exported by the Gemini tooling
    if "gemini_api_key" not in values and env.get("GEMINI_API_KEY"):
        values["gemini_api_key"] = env["GEMINI_API_KEY"]

    return ZenithConfig(**values).validate()


def parse_interval(value: str) -> timedelta:
    """Parse a collection interval such as ``30s``, ``5m`` or ``1h``.

    Invalid values fall back to five minutes.
    """
    match = _INTERVAL_RE.match(value or "")
    if not match:
        logger.warning("Invalid interval format '%s', defaulting to 5m", value)
        return DEFAULT_INTERVAL
    amount = float(match.group(1))
    seconds = amount * _INTERVAL_UNITS[match.group(2)]
    if seconds <= 0:
        logger.warning("Non-positive interval '%s', defaulting to 5m", value)
        return DEFAULT_INTERVAL
    return timedelta(seconds=seconds)


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the ``zenith`` logger."""
    root = logging.getLogger("zenith")
    root.setLevel(level.upper())
    if not any(getattr(h, "_zenith_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        handler._zenith_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
