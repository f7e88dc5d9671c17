"""Web interface for cardreview.

This module provides the FastAPI application exposing card transitions,
evaluation submission, quality reports and dimension configuration.
"""

from __future__ import annotations

from cardreview.web.app import create_app
from cardreview.web.middleware import RequestLoggingMiddleware

__all__ = [
    "create_app",
    "RequestLoggingMiddleware",
]
