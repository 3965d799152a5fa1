"""In-process event bus.

Events are defined once with a Pydantic properties model and delivered to
subscribers as :class:`EventPayload` objects (``type`` plus a properties
dict), the same shape the session server streams over ``/event``.

Example:
    class SessionCreatedProps(BaseModel):
        info: dict

    SessionCreated = BusEvent.define("session.created", SessionCreatedProps)

    unsubscribe = Bus.subscribe(SessionCreated, on_created)
    await Bus.publish(SessionCreated, SessionCreatedProps(info={"id": "ses_1"}))
    unsubscribe()
"""

import traceback
from contextvars import ContextVar, Token
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel

T = TypeVar('T', bound=BaseModel)

# Lazy logger to avoid circular imports
_log: Optional[Any] = None


def _get_log():
    global _log
    if _log is None:
        from ..util.log import Log
        _log = Log.create({"service": "bus"})
    return _log


class BusEvent(Generic[T]):
    """Event definition: a type string and the model of its properties."""

    def __init__(self, event_type: str, properties_type: type[T]):
        self.type = event_type
        self.properties_type = properties_type

    @staticmethod
    def define(event_type: str, properties_type: type[T]) -> 'BusEvent[T]':
        """Define an event type and register it for introspection."""
        event = BusEvent(event_type, properties_type)
        _registry[event_type] = event
        return event


_registry: Dict[str, BusEvent] = {}


class EventPayload(BaseModel):
    """Payload delivered to subscribers."""
    type: str
    properties: Dict[str, Any]


SubscriptionCallback = Callable[[EventPayload], Union[None, Awaitable[None]]]


_bus_var: ContextVar['Bus'] = ContextVar('_bus_var')


class Bus:
    """Event bus for publishing and subscribing to events.

    ContextVar-backed: class methods resolve the instance bound to the
    current context.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[SubscriptionCallback]] = {}

    @classmethod
    def _current(cls) -> 'Bus':
        try:
            return _bus_var.get()
        except LookupError:
            raise RuntimeError("No Bus is bound to the current context")

    @classmethod
    def provide(cls, bus: 'Bus') -> Token['Bus']:
        return _bus_var.set(bus)

    @classmethod
    def restore(cls, token: Token['Bus']) -> None:
        _bus_var.reset(token)

    @classmethod
    async def publish(cls, event: BusEvent[T], properties: Union[T, Dict[str, Any]]) -> None:
        if not isinstance(properties, event.properties_type):
            if isinstance(properties, dict):
                properties = event.properties_type(**properties)
            else:
                raise TypeError(
                    f"Properties must be instance of {event.properties_type.__name__}"
                )

        await cls._current().deliver(
            EventPayload(type=event.type, properties=properties.model_dump(by_alias=True))
        )

    @classmethod
    def subscribe(cls, event: BusEvent[T], callback: SubscriptionCallback) -> Callable[[], None]:
        return cls._current()._raw_subscribe(event.type, callback)

    @classmethod
    def subscribe_all(cls, callback: SubscriptionCallback) -> Callable[[], None]:
        return cls._current()._raw_subscribe("*", callback)

    async def deliver(self, payload: EventPayload) -> None:
        """Run the callbacks for ``payload`` in subscription order."""
        callbacks: List[SubscriptionCallback] = []
        for key in [payload.type, "*"]:
            callbacks.extend(self._subscriptions.get(key, []))

        for callback in callbacks:
            try:
                result = callback(payload)
                if hasattr(result, '__await__'):
                    await result
            except Exception as e:
                _get_log().error("subscription callback failed", {
                    "error": str(e),
                    "type": payload.type,
                    "traceback": traceback.format_exc(),
                })

    def _raw_subscribe(self, event_type: str, callback: SubscriptionCallback) -> Callable[[], None]:
        self._subscriptions.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            subs = self._subscriptions.get(event_type, [])
            if callback in subs:
                subs.remove(callback)

        return unsubscribe
