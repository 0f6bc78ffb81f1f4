"""Route modules for the caltimeline server."""

from .api_routes import register_api_routes

__all__ = ["register_api_routes"]
