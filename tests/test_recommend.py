"""Tests for the recommendation service."""

from zenith.errors import LLMError, TelemetryQueryError
from zenith.orchestrator import RecommendationService


def test_summary_includes_every_query(provider, store, experience_log):
    store.metric_results.append("Metric: {} Value: [0, 88.0]")
    store.log_results.append('{"eventMessage": "kernel panic"}')
    service = RecommendationService(provider, store, experience_log)

    summary, queries = service.build_summary()

    assert "Average CPU:\nMetric: {} Value: [0, 88.0]" in summary
    assert 'Recent errors:\n{"eventMessage": "kernel panic"}' in summary
    assert queries == "METRIC: avg(cpu_usage_pct)\nLOG: messageType:error"
    assert store.queries == [("metric", "avg(cpu_usage_pct)"), ("log", "messageType:error")]


def test_empty_results_are_marked(provider, store, experience_log):
    summary, _ = RecommendationService(provider, store, experience_log).build_summary()
    assert "Average CPU:\nno data" in summary


def test_failed_summary_query_does_not_abort(provider, store, experience_log):
    store.metric_results.append(TelemetryQueryError("backend down"))
    service = RecommendationService(provider, store, experience_log)

    outcome = service.recommend()

    assert outcome.success
    summary = provider.calls[0][1][0]
    assert "Average CPU: unavailable (backend down)" in summary


def test_success_logs_one_recommend_row(provider, store, experience_log):
    provider.recommendations.append("Quit idle Electron apps.")

    outcome = RecommendationService(provider, store, experience_log).recommend()

    assert outcome.answer == "Quit idle Electron apps."
    rows = experience_log.list_recent()
    assert len(rows) == 1
    assert rows[0].id == outcome.interaction_id
    assert rows[0].source == "recommend"
    assert rows[0].prompt == "recommend"
    assert rows[0].execution_result == "Success"
    assert "avg(cpu_usage_pct)" in rows[0].generated_query


def test_failure_logs_one_recommend_row(provider, store, experience_log):
    provider.recommendations.append(LLMError("rate limited"))

    outcome = RecommendationService(provider, store, experience_log).recommend()

    assert outcome.error == "Failed to generate recommendations: rate limited"
    rows = experience_log.list_recent()
    assert len(rows) == 1
    assert rows[0].execution_result == "Failed to generate recommendations: rate limited"
    assert outcome.to_response() == {
        "interaction_id": rows[0].id,
        "error": "Failed to generate recommendations: rate limited",
    }
