"""Tests for routing prefixes and cleanup of generated query text."""

import pytest

from zenith.llm.prompts import clean_generated_query
from zenith.orchestrator import route_query


class TestRouteQuery:
    """Literal, case-sensitive prefix dispatch."""

    @pytest.mark.parametrize(
        "generated,kind,query",
        [
            ('LOG: eventMessage:"error"', "log", 'eventMessage:"error"'),
            ('LOG:processName:"wifid"', "log", 'processName:"wifid"'),
            ("METRIC: avg(cpu_usage_pct)", "metric", "avg(cpu_usage_pct)"),
            ("  METRIC:   max(memory_used_mb)  ", "metric", "max(memory_used_mb)"),
            ("avg(cpu_usage_pct)", "metric", "avg(cpu_usage_pct)"),
            ("Log: eventMessage:error", "metric", "Log: eventMessage:error"),
            ("metric: up", "metric", "metric: up"),
            ("", "metric", ""),
        ],
    )
    def test_routing(self, generated, kind, query):
        routed = route_query(generated)
        assert routed.kind == kind
        assert routed.query == query

    def test_prefix_must_lead(self):
        routed = route_query('sum(x) LOG: something')
        assert routed.kind == "metric"
        assert routed.query == "sum(x) LOG: something"


class TestCleanGeneratedQuery:
    """Model output normalization before routing."""

    def test_plain_text_unchanged(self):
        assert clean_generated_query("METRIC: avg(cpu_usage_pct)") == "METRIC: avg(cpu_usage_pct)"

    def test_strips_think_block(self):
        raw = "<think>The user wants CPU.</think>\nMETRIC: avg(cpu_usage_pct)"
        assert clean_generated_query(raw) == "METRIC: avg(cpu_usage_pct)"

    def test_unclosed_think_block_drops_rest(self):
        assert clean_generated_query("<think>still reasoning about it") == ""

    def test_unwraps_sql_fence(self):
        raw = "```sql\nSELECT avg(value)\nFROM metric_samples\n```"
        assert clean_generated_query(raw) == "SELECT avg(value)\nFROM metric_samples"

    def test_unwraps_bare_fence_keeping_prefix(self):
        raw = "```\nLOG: processName:\"wifid\"\n```"
        assert clean_generated_query(raw) == 'LOG: processName:"wifid"'

    def test_prefix_outside_fence_is_kept(self):
        raw = "METRIC: ```promql\nsum(rate(x[5m]))\n```"
        assert clean_generated_query(raw) == "METRIC: sum(rate(x[5m]))"

    def test_drops_sql_line_comments(self):
        raw = "SELECT process_name -- the name\nFROM metric_samples -- table"
        assert clean_generated_query(raw) == "SELECT process_name\nFROM metric_samples"

    def test_trailing_comma_before_from(self):
        assert clean_generated_query("SELECT a, b, FROM t") == "SELECT a, b FROM t"

    def test_sql_label(self):
        assert clean_generated_query("SQL: SELECT 1") == "SELECT 1"

    def test_none_and_blank(self):
        assert clean_generated_query("") == ""
        assert clean_generated_query("   \n ") == ""
