"""CLI tests using Click's test runner."""

import json
from unittest.mock import MagicMock

import duckdb
import pytest
import requests
from click.testing import CliRunner

from zenith import __version__
from zenith.cli import main


def _response(status=200, payload=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    resp.text = json.dumps(payload)
    return resp


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def posts(monkeypatch):
    """Capture requests.post calls and answer from a queue."""
    calls = []
    replies = []

    def mock_post(url, json=None, timeout=None):
        calls.append((url, json))
        return replies.pop(0)

    monkeypatch.setattr("zenith.cli.requests.post", mock_post)
    return calls, replies


class TestClientCommands:
    """ask / recommend / feedback against a mocked server."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_ask_joins_words(self, runner, posts):
        calls, replies = posts
        replies.append(_response(payload={"interaction_id": 7, "answer": "CPU is at 12%."}))

        result = runner.invoke(main, ["ask", "what", "is", "my", "cpu?"])

        assert result.exit_code == 0, result.output
        assert calls == [("http://localhost:8080/query", {"query": "what is my cpu?"})]
        assert "--- Zenith Analysis ---" in result.output
        assert "CPU is at 12%." in result.output
        assert "zenith feedback 7 good|bad" in result.output

    def test_ask_error_body(self, runner, posts):
        _, replies = posts
        replies.append(_response(payload={
            "interaction_id": 3,
            "error": "Failed to generate query after 3 attempts: timeout",
        }))

        result = runner.invoke(main, ["ask", "cpu?"])

        assert result.exit_code == 1
        assert "Server Error: Failed to generate query after 3 attempts" in result.output

    def test_ask_http_error(self, runner, posts):
        _, replies = posts
        replies.append(_response(400, {"error": "Query cannot be empty"}))

        result = runner.invoke(main, ["ask", "--server", "http://box:9000/", "x"])

        assert result.exit_code == 1
        assert "Status 400" in result.output
        assert "Query cannot be empty" in result.output

    def test_ask_server_down(self, runner, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr("zenith.cli.requests.post", refuse)

        result = runner.invoke(main, ["ask", "cpu?"])

        assert result.exit_code == 1
        assert "Is the zenith server running?" in result.output

    def test_recommend(self, runner, posts):
        calls, replies = posts
        replies.append(_response(payload={"interaction_id": 9, "answer": "Quit Slack."}))

        result = runner.invoke(main, ["recommend"])

        assert result.exit_code == 0
        assert calls[0][0] == "http://localhost:8080/recommend"
        assert "--- Zenith Recommendations ---" in result.output

    def test_feedback(self, runner, posts):
        calls, replies = posts
        replies.append(_response(payload={"status": "ok"}))

        result = runner.invoke(main, ["feedback", "12", "bad"])

        assert result.exit_code == 0
        assert calls == [("http://localhost:8080/feedback", {"interaction_id": 12, "feedback": "bad"})]
        assert "Feedback recorded for interaction 12." in result.output

    def test_feedback_rejects_bad_rating(self, runner, posts):
        calls, _ = posts
        result = runner.invoke(main, ["feedback", "12", "meh"])
        assert result.exit_code == 2
        assert calls == []

    def test_feedback_rejects_non_positive_id(self, runner, posts):
        calls, _ = posts
        result = runner.invoke(main, ["feedback", "0", "good"])
        assert result.exit_code == 2
        assert calls == []


class TestLocalCommands:
    """Commands that work on local state instead of the server."""

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "zenith.json"
        path.write_text(json.dumps({
            "store_backend": "duckdb",
            "telemetry_db_path": str(tmp_path / "telemetry.duckdb"),
            "experience_db_path": str(tmp_path / "experiences.duckdb"),
        }))
        return path

    def test_collect_once(self, runner, config_file, monkeypatch, store):
        monkeypatch.setattr("zenith.store.create_store", lambda config: store)
        monkeypatch.setattr(
            "zenith.collector.scheduler.collect_metrics",
            lambda s, top_n=10: 7,
        )

        result = runner.invoke(main, ["collect", "--config", str(config_file), "--once"])

        assert result.exit_code == 0, result.output
        assert "Collected 7 samples." in result.output
        assert store.closed

    def test_bad_config_is_reported(self, runner, tmp_path):
        path = tmp_path / "zenith.json"
        path.write_text(json.dumps({"llm_provider": "bard"}))

        result = runner.invoke(main, ["collect", "--config", str(path), "--once"])

        assert result.exit_code == 1
        assert "Unsupported llm_provider" in result.output

    def test_collect_reports_locked_store(self, runner, config_file, monkeypatch):
        def locked(config):
            raise duckdb.IOException('IO Error: Could not set lock on file "telemetry.duckdb"')

        monkeypatch.setattr("zenith.store.create_store", locked)

        result = runner.invoke(main, ["collect", "--config", str(config_file), "--once"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Could not set lock" in result.output
        assert "zenith serve --collect" in result.output

    def test_serve_reports_locked_databases(self, runner, config_file, monkeypatch):
        def locked(config):
            raise duckdb.IOException('IO Error: Could not set lock on file "experiences.duckdb"')

        monkeypatch.setattr("zenith.api.build_services", locked)

        result = runner.invoke(main, ["serve", "--config", str(config_file), "--no-collect"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Cannot open Zenith databases" in result.output


# =============================================================================
# experiences (read through the running server)
# =============================================================================

class TestExperiencesCommand:
    """The dump goes through GET /experiences, never the database file."""

    @pytest.fixture
    def served(self, monkeypatch, client):
        """Route the CLI's GET requests into an in-process app."""
        calls = []

        def mock_get(url, params=None, timeout=None):
            calls.append((url, params))
            return client.get(url.replace("http://localhost:8080", ""), params=params)

        monkeypatch.setattr("zenith.cli.requests.get", mock_get)
        return calls

    def test_dump_while_server_holds_the_log(self, runner, served, experience_log):
        experience_log.append("query", "cpu?", "METRIC: up", "Success")
        experience_log.append("recommend", "recommend", "", "Success")

        result = runner.invoke(main, ["experiences", "--source", "query"])

        assert result.exit_code == 0, result.output
        rows = [json.loads(line) for line in result.output.splitlines() if line.strip()]
        assert len(rows) == 1
        assert rows[0]["prompt"] == "cpu?"
        assert served == [("http://localhost:8080/experiences", {"limit": 20, "source": "query"})]

    def test_server_down(self, runner, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr("zenith.cli.requests.get", refuse)

        result = runner.invoke(main, ["experiences"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Is the zenith server running?" in result.output

    def test_limit_is_bounded(self, runner, served):
        result = runner.invoke(main, ["experiences", "--limit", "0"])
        assert result.exit_code == 2
        assert served == []
