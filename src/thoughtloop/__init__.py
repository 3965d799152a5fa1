"""thoughtloop - break non-productive reasoning loops in agent sessions.

Watches the reasoning deltas an agent streams, detects when the agent keeps
restating the same thoughts, and interrupts the turn with a corrective
message.
"""

__version__ = "0.1.0"


# Lazy imports keep ``import thoughtloop`` free of httpx/rapidfuzz
def __getattr__(name: str):
    """Lazy import module components."""
    if name in ("Bus", "BusEvent", "EventPayload", "GlobalPath"):
        from . import core
        return getattr(core, name)
    if name in ("SessionState", "ThoughtLoopDetector", "SessionControl", "InterruptError"):
        from . import detector
        return getattr(detector, name)
    if name in ("SessionControlClient", "ApiClientError"):
        from . import api_client
        return getattr(api_client, name)
    if name == "Log":
        from .util.log import Log
        return Log
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "ApiClientError",
    "Bus",
    "BusEvent",
    "EventPayload",
    "GlobalPath",
    "InterruptError",
    "Log",
    "SessionControl",
    "SessionControlClient",
    "SessionState",
    "ThoughtLoopDetector",
]
