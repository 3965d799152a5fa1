from __future__ import annotations

from typing import Any, List, TypedDict

JSONDict = dict[str, Any]


class PromptPartPayload(TypedDict, total=False):
    id: str
    type: str
    text: str
    synthetic: bool


class PromptPayload(TypedDict, total=False):
    messageID: str
    parts: List[PromptPartPayload]
    noReply: bool


class LogPayload(TypedDict, total=False):
    service: str
    level: str
    message: str
    extra: JSONDict
