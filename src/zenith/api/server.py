"""FastAPI backend for Zenith.

Exposes the query orchestrator, recommendations and the feedback loop over
HTTP. Every error leaves the service as a JSON body with an ``error`` key;
orchestration failures are reported with status 200, request problems with
4xx.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from zenith import __version__
from zenith.api.services import ZenithServices, build_services
from zenith.config import ZenithConfig, load_config
from zenith.errors import ExperienceNotFoundError
from zenith.experience import FEEDBACK_BAD, FEEDBACK_GOOD
from zenith.llm.router import get_available_providers

logger = logging.getLogger(__name__)

FEEDBACK_LITERALS = {"good": FEEDBACK_GOOD, "bad": FEEDBACK_BAD}


class QueryRequest(BaseModel):
    """Request to ask a question."""
    query: str = Field(..., description="Natural language question")


class QueryResponse(BaseModel):
    """Answer or error for /query and /recommend. Never both."""
    interaction_id: int | None = None
    answer: str | None = None
    error: str | None = None


class FeedbackRequest(BaseModel):
    """Correctness judgment for a previously returned interaction."""
    interaction_id: int = Field(..., gt=0, description="Id returned by /query or /recommend")
    feedback: int = Field(..., description="'good' / 'bad' or 1 / -1")

    @field_validator("feedback", mode="before")
    @classmethod
    def _normalize_feedback(cls, value: Any) -> int:
        if isinstance(value, str):
            mapped = FEEDBACK_LITERALS.get(value.strip().lower())
            if mapped is None:
                raise ValueError("feedback must be 'good' or 'bad'")
            return mapped
        if isinstance(value, int) and not isinstance(value, bool) and value in (FEEDBACK_GOOD, FEEDBACK_BAD):
            return value
        raise ValueError("feedback must be 'good', 'bad', 1 or -1")


class FeedbackResponse(BaseModel):
    status: str = "ok"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid request body: " + "; ".join(parts)


def create_app(
    services: ZenithServices | None = None,
    *,
    config: ZenithConfig | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Pre-built services (tests, embedding). The caller keeps
            ownership and closes them.
        config: Config used to build services when none are given
            (default: load_config()). Services built here are closed on shutdown.
    """
    owns_services = services is None
    if services is None:
        services = build_services(config or load_config())

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        if owns_services:
            services.close()

    app = FastAPI(title="Zenith API", version=__version__, lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(_request: Request, exc: RequestValidationError):
        return _error(400, _format_validation_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_handler(_request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def _unexpected_handler(_request: Request, exc: Exception):
        logger.exception("Unhandled error")
        return _error(500, f"Unexpected error: {str(exc)[:500]}")

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": __version__,
            "provider": services.provider.name,
            "store": services.store.name,
            "available_providers": get_available_providers(),
        }

    @app.post("/query", response_model=QueryResponse, response_model_exclude_none=True)
    def query(request: QueryRequest):
        """Answer a natural-language question about system telemetry."""
        question = request.query.strip()
        if not question:
            return _error(400, "Query cannot be empty")
        outcome = services.orchestrator.handle(question)
        return QueryResponse(**outcome.to_response())

    @app.api_route(
        "/recommend",
        methods=["GET", "POST"],
        response_model=QueryResponse,
        response_model_exclude_none=True,
    )
    def recommend():
        """Generate performance recommendations from recent telemetry."""
        outcome = services.recommender.recommend()
        return QueryResponse(**outcome.to_response())

    @app.post("/feedback", response_model=FeedbackResponse)
    def feedback(request: FeedbackRequest):
        """Attach a good/bad judgment to a previous interaction."""
        try:
            services.experience_log.set_feedback(request.interaction_id, request.feedback)
        except ExperienceNotFoundError as e:
            return _error(404, str(e))
        return FeedbackResponse()

    @app.get("/experiences")
    def list_experiences(
        limit: int = Query(50, ge=1, le=1000),
        source: str | None = Query(None, pattern="^(query|recommend)$"),
    ):
        """Export recent experience rows for offline review."""
        rows = services.experience_log.list_recent(limit=limit, source=source)
        return {"experiences": [row.to_dict() for row in rows]}

    return app
