"""Shared test helpers."""

from __future__ import annotations

import asyncio
import random
import string
from typing import Any, Dict, List, Optional


def created(session_id: str) -> Dict[str, Any]:
    return {"type": "session.created", "properties": {"info": {"id": session_id}}}


def deleted(session_id: str) -> Dict[str, Any]:
    return {"type": "session.deleted", "properties": {"info": {"id": session_id}}}


def reasoning(
    session_id: str,
    delta: Optional[str],
    *,
    message_id: str = "msg_1",
    part_id: str = "prt_1",
    part_type: str = "reasoning",
) -> Dict[str, Any]:
    return {
        "type": "message.part.updated",
        "properties": {
            "part": {
                "id": part_id,
                "sessionID": session_id,
                "messageID": message_id,
                "type": part_type,
            },
            "delta": delta,
        },
    }


def distinct_segments(count: int, length: int = 300, seed: int = 7) -> List[str]:
    """Random lowercase strings, far apart in edit distance."""
    rng = random.Random(seed)
    return ["".join(rng.choice(string.ascii_lowercase) for _ in range(length)) for _ in range(count)]


class FakeControl:
    """Records session-control calls; ``gate`` holds them until set."""

    def __init__(
        self,
        *,
        message_id: Optional[str] = "msg_fix",
        abort_result: Any = True,
        prompt_error: Optional[Exception] = None,
        abort_error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.message_id = message_id
        self.abort_result = abort_result
        self.prompt_error = prompt_error
        self.abort_error = abort_error
        self.gate = gate
        self.aborts: List[str] = []
        self.prompts: List[Dict[str, Any]] = []
        self.logs: List[tuple[str, str, str, Optional[Dict[str, Any]]]] = []

    async def abort_session(self, session_id: str) -> Any:
        self.aborts.append(session_id)
        if self.gate is not None:
            await self.gate.wait()
        if self.abort_error is not None:
            raise self.abort_error
        return self.abort_result

    async def prompt_session(
        self,
        session_id: str,
        *,
        reply_to_message_id: Optional[str],
        parts: List[Dict[str, Any]],
        suppress_reply: bool,
    ) -> Optional[str]:
        self.prompts.append({
            "session_id": session_id,
            "reply_to_message_id": reply_to_message_id,
            "parts": parts,
            "suppress_reply": suppress_reply,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.prompt_error is not None:
            raise self.prompt_error
        return self.message_id

    async def log(
        self,
        level: str,
        service: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.logs.append((level, service, message, extra))

    def messages(self, level: str) -> List[str]:
        return [message for lv, _service, message, _extra in self.logs if lv == level]
