"""HTTP client for the session-control API."""

from .client import ApiClientError, SessionControlClient

__all__ = ["ApiClientError", "SessionControlClient"]
