"""Error formatting for log records."""

import json
from typing import Any

import httpx


def format_error(error: Any) -> str | None:
    """Format known application errors into short messages.

    Returns None if the error type is not recognized, allowing
    fallback to format_unknown_error.
    """
    from ..api_client import ApiClientError
    from ..core.config import ConfigError
    from ..detector.control import InterruptError

    if isinstance(error, ApiClientError):
        return f"HTTP {error.status_code} from {error.path or 'server'}: {error}"
    if isinstance(error, InterruptError):
        return str(error)
    if isinstance(error, ConfigError):
        return str(error)
    if isinstance(error, httpx.TimeoutException):
        return f"request timed out: {error}"
    if isinstance(error, httpx.TransportError):
        return f"connection failed: {error.__class__.__name__}: {error}"
    return None


def format_unknown_error(error: Any) -> str:
    """Format any error into a string representation."""
    if isinstance(error, BaseException):
        return f"{error.__class__.__name__}: {error}"

    if isinstance(error, (dict, list)):
        try:
            return json.dumps(error, indent=2)
        except (TypeError, ValueError):
            return "Unexpected error (unserializable)"

    return str(error)


def error_payload(error: Any) -> Any:
    """Raw payload carried by an error, for diagnostics."""
    payload = getattr(error, "payload", None)
    if payload is not None:
        return payload
    return format_error(error) or format_unknown_error(error)
