"""API module for Zenith.

This module provides the FastAPI endpoints for querying telemetry in
natural language and recording feedback.
"""

from zenith.api.server import create_app
from zenith.api.services import ZenithServices, build_services

__all__ = ["create_app", "ZenithServices", "build_services"]
