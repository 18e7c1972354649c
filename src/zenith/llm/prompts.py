"""Prompt templates and response cleanup for the Zenith provider roles."""

import re

SYSTEM_PROMPT = (
    "You are Zenith, an AI expert in system performance. "
    "Be extremely concise, focus on the data, and avoid conversational filler."
)

_VICTORIA_SCHEMA = (
    "You have access to two databases:\n"
    "1. VictoriaMetrics (Metrics): Query using MetricsQL (PromQL-compatible). Metrics: "
    "'cpu_usage_pct', 'memory_used_mb', 'memory_free_mb', 'process_cpu_pct', 'process_memory_mb'. "
    "Process metrics carry the labels 'pid' and 'process_name'.\n"
    "2. VictoriaLogs (Logs): Query using LogsQL. Fields: processName, subsystem, category, "
    "messageType, eventMessage.\n\n"
    "Based on the user query, provide ONLY the database query prefixed with 'METRIC:' or 'LOG:'. "
    "Do NOT include explanation or markdown.\n\n"
    "Rules for Process Names:\n"
    "- Process names can be unpredictable (e.g., 'Ollama' vs 'ollama').\n"
    '- ALWAYS use case-insensitive regex for process names: `process_memory_mb{process_name=~"(?i)ollama"}`.\n\n'
    'Example MetricsQL: `avg(cpu_usage_pct)`, `max(process_memory_mb{process_name=~"(?i)ollama"})`\n'
    'Example LogsQL: `eventMessage:"error"`, `processName:"wifid"`'
)

_DUCKDB_SCHEMA = (
    "You have access to a DuckDB SQL database with two tables:\n"
    "- metric_samples (ts TIMESTAMP, metric VARCHAR, value DOUBLE, host VARCHAR, pid INTEGER, "
    "process_name VARCHAR, labels_json VARCHAR). metric is one of 'cpu_usage_pct', "
    "'memory_used_mb', 'memory_free_mb', 'process_cpu_pct', 'process_memory_mb'.\n"
    "- system_logs (ts TIMESTAMP, pid INTEGER, process VARCHAR, subsystem VARCHAR, "
    "category VARCHAR, level VARCHAR, message VARCHAR)\n\n"
    "Based on the user query, provide ONLY one SQL query. Prefix it with 'LOG:' when it reads "
    "system_logs and 'METRIC:' otherwise. Do NOT include explanation or markdown.\n"
    "Use ILIKE for case-insensitive process name matching."
)

_SCHEMAS = {"victoria": _VICTORIA_SCHEMA, "duckdb": _DUCKDB_SCHEMA}

_THINK_OPEN = "<think>"
_THINK_CLOSE = "</think>"
_FENCE_LANG_RE = re.compile(r"^(sql|promql|metricsql|logsql|text)[ \t]*\n", re.IGNORECASE)
_TRAILING_COMMA_FROM_RE = re.compile(r",(\s*)\bfrom\b", re.IGNORECASE)


def build_query_messages(question: str, store_flavor: str = "victoria") -> list[dict[str, str]]:
    schema = _SCHEMAS.get(store_flavor, _VICTORIA_SCHEMA)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"{schema}\n\nQuery: {question}\n\nResponse:"},
    ]


def build_explain_messages(question: str, query: str, results: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                "Analyze the database results below to answer the user's question. "
                "Do NOT explain the query syntax. "
                "If the results are empty, say 'No relevant data found'.\n\n"
                f"User Query: {question}\n"
                f"Query Executed: {query}\n"
                f"Database Results: {results}\n\n"
                "Analysis:"
            ),
        },
    ]


def build_recommendation_messages(summary: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                "Below is a summary of recent system telemetry. Identify the most significant "
                "performance issues and give at most five concrete, prioritized recommendations "
                "to improve performance. Reference the data that supports each one.\n\n"
                f"Telemetry Summary:\n{summary}\n\n"
                "Recommendations:"
            ),
        },
    ]


def _strip_think_blocks(text: str) -> str:
    while True:
        start = text.find(_THINK_OPEN)
        if start == -1:
            return text
        end = text.find(_THINK_CLOSE, start)
        if end == -1:
            # Unclosed block: the rest is reasoning, not an answer
            return text[:start].strip()
        text = (text[:start] + text[end + len(_THINK_CLOSE):]).strip()


def _unwrap_fence(text: str) -> str:
    if "```" not in text:
        return text
    parts = text.split("```")
    lead = parts[0].strip()
    prefix = f"{lead} " if lead in ("METRIC:", "LOG:") else ""
    # Odd-indexed parts sit between an opening and a closing fence
    for part in parts[1::2]:
        candidate = part.strip("\n ")
        if not candidate:
            continue
        lang = _FENCE_LANG_RE.match(candidate)
        if lang:
            return prefix + candidate[lang.end():].strip()
        return prefix + candidate.strip()
    return text.replace("```", "").strip()


def clean_generated_query(raw: str) -> str:
    """Normalize raw model output into a single query string.

    Strips reasoning blocks, markdown fences, SQL line comments, trailing
    commas before FROM and a leading ``SQL:`` label. ``METRIC:``/``LOG:``
    prefixes are kept for routing.
    """
    text = _strip_think_blocks((raw or "").strip())
    text = _unwrap_fence(text)

    lines = []
    for line in text.splitlines():
        idx = line.find("--")
        if idx != -1:
            line = line[:idx]
        lines.append(line.rstrip())
    text = "\n".join(line for line in lines if line.strip()).strip()

    text = _TRAILING_COMMA_FROM_RE.sub(r"\1FROM", text)

    for label in ("SQL:", "Sql:", "sql:"):
        if text.startswith(label):
            text = text[len(label):].strip()
            break
    return text.strip()
