"""Middleware components for request processing.

Request correlation ids, access logging, JSON error responses and CORS
headers.
"""

from .correlation_id import correlation_id_middleware
from .cors import cors_middleware
from .error_handler import error_middleware, json_error
from .request_logging import request_logging_middleware

__all__ = [
    "correlation_id_middleware",
    "cors_middleware",
    "error_middleware",
    "json_error",
    "request_logging_middleware",
]
