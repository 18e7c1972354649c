"""Orchestration of question answering and recommendations.

Question → generate query → execute → explain, with bounded retries and an
experience row written at every outcome.
"""

from zenith.orchestrator.recommend import RecommendationService
from zenith.orchestrator.runtime import QueryOrchestrator, QueryOutcome, Stage, route_query

__all__ = ["QueryOrchestrator", "QueryOutcome", "RecommendationService", "Stage", "route_query"]
