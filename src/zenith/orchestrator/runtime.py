"""Query orchestrator: question → generated query → results → explanation.

The orchestrator is an explicit state machine:

    GENERATING → EXECUTING → EXPLAINING → DONE
         ↑            │
         └────────────┘  (next attempt, bounded by max_attempts)

Failure handling per stage:
- GENERATING: retried silently; only the final failure is logged
- EXECUTING: every failure is logged; the final one is logged twice
  ("Execution Error" then "Final Execution Error")
- EXPLAINING: not retried; a failure is logged and returned

Retries re-prompt immediately (no backoff). Model output is assumed to be
non-deterministic, so a fresh generation is the only correction applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from zenith.experience import SOURCE_QUERY, ExperienceLog
from zenith.llm.provider import LLMProvider
from zenith.store.base import QUERY_KIND_LOG, QUERY_KIND_METRIC, TelemetryStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

LOG_PREFIX = "LOG:"
METRIC_PREFIX = "METRIC:"

RESULT_SUCCESS = "Success"


class Stage(str, Enum):
    """Orchestrator state."""

    GENERATING = "generating"
    EXECUTING = "executing"
    EXPLAINING = "explaining"
    DONE = "done"


@dataclass(frozen=True)
class RoutedQuery:
    """A generated query with its routing prefix removed."""

    kind: str
    query: str


def route_query(generated: str) -> RoutedQuery:
    """Classify generated text by its literal, case-sensitive prefix.

    ``LOG:`` routes to the log backend. ``METRIC:`` or no recognized prefix
    routes to the metric backend.
    """
    text = (generated or "").strip()
    if text.startswith(LOG_PREFIX):
        return RoutedQuery(QUERY_KIND_LOG, text[len(LOG_PREFIX):].strip())
    if text.startswith(METRIC_PREFIX):
        return RoutedQuery(QUERY_KIND_METRIC, text[len(METRIC_PREFIX):].strip())
    return RoutedQuery(QUERY_KIND_METRIC, text)


@dataclass
class QueryOutcome:
    """Result of one orchestrated request. Exactly one of answer/error is set."""

    interaction_id: int | None = None
    answer: str | None = None
    error: str | None = None
    attempts: int = 0
    generated_query: str = ""

    @property
    def success(self) -> bool:
        return self.error is None

    def to_response(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.interaction_id:
            data["interaction_id"] = self.interaction_id
        if self.error is not None:
            data["error"] = self.error
        else:
            data["answer"] = self.answer or ""
        return data


@dataclass
class _AttemptState:
    """Request-local state; never shared between requests."""

    attempt: int = 1
    stage: Stage = Stage.GENERATING
    generated: str = ""
    routed: RoutedQuery | None = None
    results: str = ""
    outcome: QueryOutcome | None = None
    trace: list[str] = field(default_factory=list)


def record_experience(
    experience_log: ExperienceLog,
    source: str,
    prompt: str,
    generated_query: str,
    execution_result: str,
) -> int | None:
    """Append an experience row; a storage failure is logged, never raised."""
    try:
        return experience_log.append(source, prompt, generated_query, execution_result)
    except Exception as e:
        logger.error("Failed to log experience (%s): %s", execution_result[:80], e)
        return None


class QueryOrchestrator:
    """Turns one natural-language question into one explained answer.

    Usage:
        orchestrator = QueryOrchestrator(provider, store, experience_log)
        outcome = orchestrator.handle("What is the average CPU usage?")
    """

    def __init__(
        self,
        provider: LLMProvider,
        store: TelemetryStore,
        experience_log: ExperienceLog,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self.store = store
        self.experience_log = experience_log
        self.max_attempts = max_attempts

    def handle(self, user_query: str) -> QueryOutcome:
        """Run the state machine to completion for one question."""
        logger.info("Analyzing query: %s", user_query)
        state = _AttemptState()

        while state.stage is not Stage.DONE:
            state.trace.append(f"{state.attempt}:{state.stage.value}")
            if state.stage is Stage.GENERATING:
                self._generate(state, user_query)
            elif state.stage is Stage.EXECUTING:
                self._execute(state, user_query)
            elif state.stage is Stage.EXPLAINING:
                self._explain(state, user_query)

        logger.debug("Query trace: %s", " -> ".join(state.trace))
        if state.outcome is None:
            raise RuntimeError("orchestrator finished without an outcome")
        return state.outcome

    def _is_last_attempt(self, state: _AttemptState) -> bool:
        return state.attempt >= self.max_attempts

    @staticmethod
    def _routed(state: _AttemptState) -> RoutedQuery:
        if state.routed is None:
            raise RuntimeError(f"no routed query in stage {state.stage.value}")
        return state.routed

    def _record(self, user_query: str, generated: str, result: str) -> int | None:
        return record_experience(self.experience_log, SOURCE_QUERY, user_query, generated, result)

    def _finish(self, state: _AttemptState, outcome: QueryOutcome) -> None:
        outcome.attempts = state.attempt
        outcome.generated_query = state.generated
        state.outcome = outcome
        state.stage = Stage.DONE

    def _generate(self, state: _AttemptState, user_query: str) -> None:
        try:
            state.generated = self.provider.generate_query(user_query)
        except Exception as e:
            logger.warning("Attempt %d: Failed to generate query: %s", state.attempt, e)
            if not self._is_last_attempt(state):
                state.attempt += 1
                return
            state.generated = ""
            exp_id = self._record(user_query, "", f"Failed to generate query: {e}")
            self._finish(
                state,
                QueryOutcome(
                    interaction_id=exp_id,
                    error=f"Failed to generate query after {self.max_attempts} attempts: {e}",
                ),
            )
            return

        state.routed = route_query(state.generated)
        state.stage = Stage.EXECUTING

    def _execute(self, state: _AttemptState, user_query: str) -> None:
        routed = self._routed(state)
        logger.info("Attempt %d: Executing %s query: %s", state.attempt, routed.kind, routed.query)
        try:
            state.results = self.store.run(routed.kind, routed.query)
        except Exception as e:
            logger.warning("Attempt %d: Execution error: %s", state.attempt, e)
            self._record(user_query, state.generated, f"Execution Error: {e}")
            if not self._is_last_attempt(state):
                state.attempt += 1
                state.stage = Stage.GENERATING
                return
            exp_id = self._record(user_query, state.generated, f"Final Execution Error: {e}")
            self._finish(
                state,
                QueryOutcome(
                    interaction_id=exp_id,
                    error=f"Failed to execute query after {self.max_attempts} attempts: {e}",
                ),
            )
            return

        logger.info("Attempt %d: Query executed successfully", state.attempt)
        state.stage = Stage.EXPLAINING

    def _explain(self, state: _AttemptState, user_query: str) -> None:
        routed = self._routed(state)
        try:
            answer = self.provider.explain_results(user_query, routed.query, state.results)
        except Exception as e:
            logger.warning("Failed to explain results: %s", e)
            exp_id = self._record(user_query, state.generated, f"Failed to explain results: {e}")
            self._finish(
                state,
                QueryOutcome(interaction_id=exp_id, error=f"Failed to explain results: {e}"),
            )
            return

        exp_id = self._record(user_query, state.generated, RESULT_SUCCESS)
        logger.info("Query analysis finished [interaction %s]", exp_id)
        self._finish(state, QueryOutcome(interaction_id=exp_id, answer=answer))
