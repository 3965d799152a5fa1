"""Outbound session-control contract used by the detector."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, TypedDict


class PromptPart(TypedDict, total=False):
    id: str
    type: str
    text: str
    synthetic: bool


class SessionControl(Protocol):
    """Remote operations the detector needs from the session server."""

    async def abort_session(self, session_id: str) -> bool:
        """Interrupt the in-flight generation, True when the server accepted it."""
        ...

    async def prompt_session(
        self,
        session_id: str,
        *,
        reply_to_message_id: Optional[str],
        parts: List[PromptPart],
        suppress_reply: bool,
    ) -> Optional[str]:
        """Inject a message and return the id the server assigned to it."""
        ...

    async def log(
        self,
        level: str,
        service: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class InterruptError(RuntimeError):
    """Raised when the server answers an interrupt call with a negative result."""

    def __init__(self, session_id: str, operation: str, payload: Any = None) -> None:
        self.session_id = session_id
        self.operation = operation
        self.payload = payload
        super().__init__(f"{operation} rejected for session {session_id}: {payload!r}")


def corrective_part(text: str, part_id: Optional[str] = None) -> PromptPart:
    part: PromptPart = {"type": "text", "text": text, "synthetic": True}
    if part_id:
        part["id"] = part_id
    return part
