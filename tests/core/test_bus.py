import pytest
from pydantic import BaseModel

from thoughtloop.core.bus import Bus, BusEvent, EventPayload


class PingProps(BaseModel):
    value: int


Ping = BusEvent.define("test.ping", PingProps)


@pytest.mark.anyio
async def test_publish_reaches_typed_and_wildcard_subscribers() -> None:
    seen: list[tuple[str, EventPayload]] = []

    async def on_any(payload: EventPayload) -> None:
        seen.append(("any", payload))

    unsubscribe = Bus.subscribe(Ping, lambda payload: seen.append(("ping", payload)))
    Bus.subscribe_all(on_any)

    await Bus.publish(Ping, {"value": 3})
    unsubscribe()
    await Bus.publish(Ping, PingProps(value=4))

    assert [(kind, payload.properties["value"]) for kind, payload in seen] == [
        ("ping", 3),
        ("any", 3),
        ("any", 4),
    ]


@pytest.mark.anyio
async def test_failing_subscriber_does_not_block_others() -> None:
    seen: list[int] = []

    def broken(payload: EventPayload) -> None:
        raise RuntimeError("subscriber bug")

    Bus.subscribe(Ping, broken)
    Bus.subscribe(Ping, lambda payload: seen.append(payload.properties["value"]))

    await Bus.publish(Ping, {"value": 1})

    assert seen == [1]


@pytest.mark.anyio
async def test_publish_rejects_wrong_properties_type() -> None:
    with pytest.raises(TypeError):
        await Bus.publish(Ping, "nope")  # type: ignore[arg-type]
