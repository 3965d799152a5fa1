import json

import httpx
import pytest

from thoughtloop.api_client import ApiClientError, SessionControlClient
from thoughtloop.detector.control import corrective_part


@pytest.mark.anyio
async def test_client_calls_session_control_endpoints() -> None:
    requests: list[tuple[str, str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        requests.append((request.method, request.url.path, body))
        route = (request.method, request.url.path)

        if route == ("POST", "/session/ses_1/abort"):
            return httpx.Response(200, json=True)
        if route == ("POST", "/session/ses_1/message"):
            return httpx.Response(200, json={"info": {"id": "msg_fix", "role": "assistant"}, "parts": []})
        if route == ("POST", "/log"):
            return httpx.Response(200, json=True)
        return httpx.Response(404, json={"error": "unexpected route"})

    client = SessionControlClient(base_url="http://server.test", transport=httpx.MockTransport(handler))

    assert await client.abort_session("ses_1") is True
    message_id = await client.prompt_session(
        "ses_1",
        reply_to_message_id="msg_loop",
        parts=[corrective_part("stop looping", "prt_1")],
        suppress_reply=False,
    )
    await client.log("warn", "[ThoughtLoopDetector]", "Thought loop detected", {"distance": 0})
    await client.aclose()

    assert message_id == "msg_fix"
    assert requests[1][2] == {
        "messageID": "msg_loop",
        "parts": [{"id": "prt_1", "type": "text", "text": "stop looping", "synthetic": True}],
        "noReply": False,
    }
    assert requests[2][2] == {
        "service": "[ThoughtLoopDetector]",
        "level": "warn",
        "message": "Thought loop detected",
        "extra": {"distance": 0},
    }


@pytest.mark.anyio
async def test_abort_reports_negative_acknowledgment() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=False)

    client = SessionControlClient(base_url="http://server.test", transport=httpx.MockTransport(handler))

    assert await client.abort_session("ses_1") is False


@pytest.mark.anyio
async def test_prompt_without_message_id_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    client = SessionControlClient(base_url="http://server.test", transport=httpx.MockTransport(handler))

    assert await client.prompt_session(
        "ses_1",
        reply_to_message_id=None,
        parts=[corrective_part("stop")],
        suppress_reply=True,
    ) is None


@pytest.mark.anyio
async def test_client_raises_with_error_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"data": {"message": "session busy"}, "name": "BadRequest"})

    client = SessionControlClient(base_url="http://server.test", transport=httpx.MockTransport(handler))

    with pytest.raises(ApiClientError) as exc:
        await client.abort_session("ses_1")

    assert exc.value.status_code == 400
    assert str(exc.value) == "session busy"
    assert exc.value.payload == {"data": {"message": "session busy"}, "name": "BadRequest"}
    assert exc.value.path == "/session/ses_1/abort"


@pytest.mark.anyio
async def test_stream_events_decodes_sse_data_lines() -> None:
    body = (
        ": keepalive\n\n"
        'data: {"type":"server.connected","properties":{}}\n\n'
        "event: message\n"
        'data: {"type":"session.created","properties":{"info":{"id":"ses_1"}}}\n\n'
        "data: not-json\n\n"
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/event"
        assert request.headers["x-opencode-directory"] == "/work/proj"
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    client = SessionControlClient(
        base_url="http://server.test",
        transport=httpx.MockTransport(handler),
        directory="/work/proj",
    )

    events = [event async for event in client.stream_events()]

    assert [event["type"] for event in events] == ["server.connected", "session.created"]
