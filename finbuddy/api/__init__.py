"""HTTP API package."""

from finbuddy.api.app import create_app, error_response

__all__ = ["create_app", "error_response"]
