"""Dependency container wiring the provider, store and experience log."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from zenith.config import ZenithConfig
from zenith.experience import ExperienceLog
from zenith.llm import LLMProvider, create_provider
from zenith.orchestrator import QueryOrchestrator, RecommendationService
from zenith.store import TelemetryStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class ZenithServices:
    """Long-lived collaborators constructed once at startup."""

    provider: LLMProvider
    store: TelemetryStore
    experience_log: ExperienceLog
    orchestrator: QueryOrchestrator
    recommender: RecommendationService

    @classmethod
    def from_parts(
        cls,
        provider: LLMProvider,
        store: TelemetryStore,
        experience_log: ExperienceLog,
        *,
        max_attempts: int = 3,
    ) -> "ZenithServices":
        return cls(
            provider=provider,
            store=store,
            experience_log=experience_log,
            orchestrator=QueryOrchestrator(
                provider, store, experience_log, max_attempts=max_attempts
            ),
            recommender=RecommendationService(provider, store, experience_log),
        )

    def close(self) -> None:
        self.experience_log.close()
        self.store.close()


def build_services(config: ZenithConfig) -> ZenithServices:
    """Construct all services from config. Failures here are fatal at startup."""
    provider = create_provider(config)
    store = create_store(config)
    experience_log = ExperienceLog(config.experience_db_path)
    logger.info(
        "Using %s provider (model: %s) with %s store",
        provider.name,
        config.llm_model or "default",
        store.name,
    )
    return ZenithServices.from_parts(
        provider, store, experience_log, max_attempts=config.max_attempts
    )
