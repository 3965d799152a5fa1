from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..detector.control import PromptPart
from .types import LogPayload, PromptPayload


class ApiClientError(RuntimeError):
    """Raised when an API call fails."""

    def __init__(
        self,
        status_code: int,
        message: str,
        payload: Any | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
        self.path = path


class SessionControlClient:
    """HTTP client for the session server's abort, prompt, log and event routes."""

    def __init__(
        self,
        *,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        directory: str | None = None,
    ) -> None:
        request_headers: dict[str, str] = dict(headers or {})
        if directory:
            request_headers["x-opencode-directory"] = self._encode_directory_header(directory)

        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=timeout,
            headers=request_headers or None,
        )

        if client is not None and request_headers:
            self._client.headers.update(request_headers)

    @staticmethod
    def _encode_directory_header(directory: str) -> str:
        value = str(directory)
        is_non_ascii = any(ord(ch) > 127 for ch in value)
        return quote(value) if is_non_ascii else value

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SessionControlClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        response = await self._client.request(method, path, json=json_body, params=params)

        self._raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            return {"value": response.text}

    async def _stream_request(self, method: str, path: str) -> httpx.Response:
        request = self._client.build_request(method, path, timeout=httpx.Timeout(None))
        response = await self._client.send(request, stream=True)
        if not response.is_success:
            await response.aread()
            await response.aclose()
        self._raise_for_status(response)
        return response

    @staticmethod
    def _extract_error_message(payload: Any, fallback: str) -> str:
        if isinstance(payload, dict):
            err = payload.get("error")
            if isinstance(err, dict):
                message = err.get("message")
                if isinstance(message, str) and message.strip():
                    return message
            if isinstance(err, str) and err.strip():
                return err
            data = payload.get("data")
            if isinstance(data, dict):
                message = data.get("message")
                if isinstance(message, str) and message.strip():
                    return message
            message = payload.get("message")
            if isinstance(message, str) and message.strip():
                return message
        return fallback

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return

        payload: Any | None
        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        message = self._extract_error_message(
            payload,
            f"HTTP {response.status_code} for {response.request.method} {response.request.url.path}",
        )
        raise ApiClientError(
            status_code=response.status_code,
            message=message,
            payload=payload,
            path=response.request.url.path,
        )

    @staticmethod
    def _iter_stream_payload_lines(line: str) -> str | None:
        value = line.strip()
        if not value or value.startswith(":"):
            return None
        if value.startswith(("event:", "id:", "retry:")):
            return None
        if value.startswith("data:"):
            value = value[5:].strip()
        if not value or value == "[DONE]":
            return None
        return value

    async def _iter_stream_events(self, response: httpx.Response) -> AsyncIterator[dict[str, Any]]:
        async for line in response.aiter_lines():
            payload_line = self._iter_stream_payload_lines(line)
            if payload_line is None:
                continue
            try:
                payload = json.loads(payload_line)
            except json.JSONDecodeError:
                continue

            if isinstance(payload, dict):
                yield payload

    @staticmethod
    def _message_id(result: Any) -> Optional[str]:
        if not isinstance(result, dict):
            return None
        info = result.get("info")
        if isinstance(info, dict) and isinstance(info.get("id"), str):
            return info["id"]
        for key in ("messageID", "message_id", "id"):
            value = result.get(key)
            if isinstance(value, str) and value:
                return value
        return None

    async def abort_session(self, session_id: str) -> bool:
        result = await self._request_json(
            "POST",
            f"/session/{quote(session_id, safe='')}/abort",
        )
        if isinstance(result, dict):
            return result.get("ok", result.get("value")) is True
        return result is True

    async def prompt_session(
        self,
        session_id: str,
        *,
        reply_to_message_id: Optional[str],
        parts: List[PromptPart],
        suppress_reply: bool,
    ) -> Optional[str]:
        payload: PromptPayload = {
            "parts": [dict(part) for part in parts],  # type: ignore[misc]
            "noReply": suppress_reply,
        }
        if reply_to_message_id:
            payload["messageID"] = reply_to_message_id
        result = await self._request_json(
            "POST",
            f"/session/{quote(session_id, safe='')}/message",
            json_body=dict(payload),
        )
        return self._message_id(result)

    async def log(
        self,
        level: str,
        service: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload: LogPayload = {"service": service, "level": level, "message": message}
        if extra:
            payload["extra"] = json.loads(json.dumps(extra, default=str))
        await self._request_json("POST", "/log", json_body=dict(payload))

    async def stream_events(self) -> AsyncIterator[dict[str, Any]]:
        response = await self._stream_request("GET", "/event")
        try:
            async for event in self._iter_stream_events(response):
                yield event
        finally:
            await response.aclose()
