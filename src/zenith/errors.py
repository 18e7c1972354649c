"""Exception hierarchy shared across Zenith components."""


class ZenithError(Exception):
    """Base class for all Zenith errors."""


class ConfigError(ZenithError):
    """Raised when the config file cannot be parsed or holds unknown keys."""


class LLMError(ZenithError):
    """Raised when a language-model provider call fails or returns nothing usable."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class TelemetryQueryError(ZenithError):
    """Raised when the telemetry backend rejects or cannot run a query."""

    def __init__(self, message: str, query: str | None = None):
        super().__init__(message)
        self.query = query


class ExperienceNotFoundError(ZenithError, KeyError):
    """Raised when an experience id does not exist in the experience log."""

    def __init__(self, experience_id: int):
        super().__init__(f"experience ID {experience_id} not found")
        self.experience_id = experience_id

    def __str__(self) -> str:
        return self.args[0]
