"""Performance recommendations from a fixed telemetry summary."""

import logging

from zenith.experience import SOURCE_RECOMMEND, ExperienceLog
from zenith.llm.provider import LLMProvider
from zenith.orchestrator.runtime import RESULT_SUCCESS, QueryOutcome, record_experience
from zenith.store.base import TelemetryStore

logger = logging.getLogger(__name__)

RECOMMEND_PROMPT = "recommend"


class RecommendationService:
    """Gathers the store's summary queries and asks the provider for advice.

    A failing summary query does not abort the run; it is noted inline so
    the model still sees the rest of the picture. Exactly one experience row
    with source ``recommend`` is written per call.
    """

    def __init__(self, provider: LLMProvider, store: TelemetryStore, experience_log: ExperienceLog):
        self.provider = provider
        self.store = store
        self.experience_log = experience_log

    def build_summary(self) -> tuple[str, str]:
        """Return ``(summary_text, executed_queries)``."""
        sections = []
        queries = []
        for label, kind, query in self.store.summary_queries():
            queries.append(f"{kind.upper()}: {query}")
            try:
                result = self.store.run(kind, query).strip()
            except Exception as e:
                logger.warning("Summary query '%s' failed: %s", label, e)
                sections.append(f"{label}: unavailable ({e})")
                continue
            sections.append(f"{label}:\n{result or 'no data'}")
        return "\n\n".join(sections), "\n".join(queries)

    def recommend(self) -> QueryOutcome:
        summary, queries = self.build_summary()
        try:
            answer = self.provider.generate_recommendations(summary)
        except Exception as e:
            logger.warning("Failed to generate recommendations: %s", e)
            exp_id = record_experience(
                self.experience_log,
                SOURCE_RECOMMEND,
                RECOMMEND_PROMPT,
                queries,
                f"Failed to generate recommendations: {e}",
            )
            return QueryOutcome(
                interaction_id=exp_id,
                error=f"Failed to generate recommendations: {e}",
                attempts=1,
                generated_query=queries,
            )

        exp_id = record_experience(
            self.experience_log, SOURCE_RECOMMEND, RECOMMEND_PROMPT, queries, RESULT_SUCCESS
        )
        return QueryOutcome(interaction_id=exp_id, answer=answer, attempts=1, generated_query=queries)
