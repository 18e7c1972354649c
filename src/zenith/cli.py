"""CLI entrypoint for zenith."""

import json
import sys

import click
import duckdb
import requests

from zenith import __version__
from zenith.config import configure_logging, load_config, parse_interval
from zenith.errors import ConfigError

DEFAULT_SERVER = "http://localhost:8080"


def _load(config_path: str | None):
    try:
        return load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def _request(
    method: str,
    server: str,
    path: str,
    *,
    payload: dict | None = None,
    params: dict | None = None,
    timeout: int = 600,
) -> dict:
    """Call the Zenith server and return its JSON body."""
    url = f"{server.rstrip('/')}{path}"
    try:
        if method == "GET":
            resp = requests.get(url, params=params, timeout=timeout)
        else:
            resp = requests.post(url, json=payload or {}, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise click.ClickException(
            f"Error contacting server at {server}: {e}\nIs the zenith server running?"
        ) from e

    try:
        body = resp.json()
    except ValueError:
        raise click.ClickException(
            f"Server returned error (Status {resp.status_code}): {resp.text}"
        ) from None

    if resp.status_code != 200:
        message = body.get("error") if isinstance(body, dict) else None
        raise click.ClickException(
            f"Server returned error (Status {resp.status_code}): {message or resp.text}"
        )
    return body


def _print_outcome(body: dict, title: str) -> None:
    if body.get("error"):
        raise click.ClickException(f"Server Error: {body['error']}")
    click.echo(f"\n--- {title} ---")
    click.echo(body.get("answer", ""))
    if body.get("interaction_id"):
        click.echo(
            f"\n(interaction {body['interaction_id']} - rate it with: "
            f"zenith feedback {body['interaction_id']} good|bad)"
        )


@click.group()
@click.version_option(__version__)
def main():
    """zenith - ask questions about your system's telemetry."""
    pass


@main.command()
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Path to JSON config (default: ./zenith.json)")
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", default=None, type=int, help="HTTP port (overrides config)")
@click.option("--provider", default=None,
              type=click.Choice(["ollama", "openai", "anthropic", "gemini"]),
              help="LLM provider (overrides config)")
@click.option("--model", default=None, help="Model name (overrides config)")
@click.option("--collect/--no-collect", default=None,
              help="Run the background collector (default: from config)")
def serve(config_path, host, port, provider, model, collect):
    """Start the HTTP server and the background collector."""
    import uvicorn

    from zenith.api import build_services, create_app
    from zenith.collector import CollectionScheduler

    config = _load(config_path)
    if host:
        config.server_host = host
    if port:
        config.server_port = port
    if provider:
        config.llm_provider = provider
    if model:
        config.llm_model = model
    if collect is not None:
        config.collect_enabled = collect
    try:
        config.validate()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    configure_logging(config.log_level)

    try:
        services = build_services(config)
    except duckdb.Error as e:
        raise click.ClickException(f"Cannot open Zenith databases: {e}") from e
    scheduler = None
    if config.collect_enabled:
        scheduler = CollectionScheduler(
            services.store,
            parse_interval(config.collect_interval),
            top_n=config.top_processes,
        )
        scheduler.start()

    click.echo(f"Starting Zenith server on {config.server_host}:{config.server_port}...")
    try:
        uvicorn.run(
            create_app(services),
            host=config.server_host,
            port=config.server_port,
            log_level=config.log_level.lower(),
        )
    finally:
        if scheduler is not None:
            scheduler.stop()
        services.close()


@main.command()
@click.argument("query", nargs=-1, required=True)
@click.option("--server", default=DEFAULT_SERVER, show_default=True, help="Zenith server address")
def ask(query, server):
    """Ask a question, e.g. zenith ask how many errors in the last hour?"""
    body = _request("POST", server, "/query", payload={"query": " ".join(query)})
    _print_outcome(body, "Zenith Analysis")


@main.command()
@click.option("--server", default=DEFAULT_SERVER, show_default=True, help="Zenith server address")
def recommend(server):
    """Get performance recommendations from recent telemetry."""
    body = _request("POST", server, "/recommend")
    _print_outcome(body, "Zenith Recommendations")


@main.command()
@click.argument("interaction_id", type=int)
@click.argument("rating", type=click.Choice(["good", "bad"]))
@click.option("--server", default=DEFAULT_SERVER, show_default=True, help="Zenith server address")
def feedback(interaction_id, rating, server):
    """Rate a previous answer as good or bad."""
    if interaction_id <= 0:
        raise click.BadParameter("must be a positive interaction id", param_hint="INTERACTION_ID")
    _request(
        "POST", server, "/feedback", payload={"interaction_id": interaction_id, "feedback": rating}
    )
    click.echo(f"Feedback recorded for interaction {interaction_id}.")


@main.command()
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Path to JSON config (default: ./zenith.json)")
@click.option("--once", is_flag=True, help="Collect a single round and exit")
def collect(config_path, once):
    """Collect host metrics into the configured telemetry store."""
    from zenith.collector import CollectionScheduler
    from zenith.store import create_store

    config = _load(config_path)
    configure_logging(config.log_level)
    try:
        store = create_store(config)
    except duckdb.Error as e:
        raise click.ClickException(
            f"Cannot open telemetry store {config.telemetry_db_path}: {e}\n"
            "Is a zenith server already collecting into it? Use 'zenith serve --collect' instead."
        ) from e
    scheduler = CollectionScheduler(
        store, parse_interval(config.collect_interval), top_n=config.top_processes
    )
    try:
        if once:
            written = scheduler.run_once()
            click.echo(f"Collected {written} samples.")
            return
        scheduler.start()
        click.echo(f"Collecting every {config.collect_interval} (Ctrl+C to stop)...")
        while scheduler.running:
            scheduler.join(1.0)
    except KeyboardInterrupt:
        click.echo("\nStopping collector.")
    finally:
        scheduler.stop()
        store.close()


@main.command()
@click.option("--limit", default=20, show_default=True, type=click.IntRange(1, 1000))
@click.option("--source", default=None, type=click.Choice(["query", "recommend"]))
@click.option("--server", default=DEFAULT_SERVER, show_default=True, help="Zenith server address")
def experiences(limit, source, server):
    """Dump recent experience rows as JSON lines."""
    params = {"limit": limit}
    if source:
        params["source"] = source
    body = _request("GET", server, "/experiences", params=params)
    for row in body.get("experiences", []):
        click.echo(json.dumps(row))


if __name__ == "__main__":
    sys.exit(main())
