"""Synchronous publish/subscribe bus for workflow notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class WorkflowEvent(str, Enum):
    """Named events published by the workflow."""

    STEP_CHANGED = "step:changed"
    KEYPAIR_GENERATED = "keypair:generated"
    JWT_RECEIVED = "jwt:received"
    SALT_GENERATED = "salt:generated"
    ADDRESS_GENERATED = "address:generated"
    PROOF_RECEIVED = "proof:received"
    ERROR = "error"
    READY = "ready"


EventName = Union[WorkflowEvent, str]


def _event_name(event: EventName) -> str:
    return event.value if isinstance(event, WorkflowEvent) else str(event)


class EventBus:
    """Many-to-many registry of named-event handlers.

    Handlers run synchronously in subscription order. A failing handler is
    logged and skipped; it never affects other handlers or the publisher.
    Events are not stored, so late subscribers miss earlier events.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event: EventName, handler: Handler) -> None:
        self._handlers[_event_name(event)].append(handler)

    def unsubscribe(self, event: EventName, handler: Handler) -> None:
        handlers = self._handlers.get(_event_name(event))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def publish(self, event: EventName, *args: Any) -> None:
        name = _event_name(event)
        # snapshot so handlers may unsubscribe while being called
        for handler in list(self._handlers.get(name, ())):
            try:
                handler(*args)
            except Exception:
                logger.exception(f"Error in event handler for {name}")

    def handler_count(self, event: EventName) -> int:
        return len(self._handlers.get(_event_name(event), ()))
