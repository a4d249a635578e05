"""Lifecycle event dispatch.

Mappers and entities each own an EventManager. The mapper fires
``{mode}.pre`` / ``{mode}.post`` around writes and ``hydrate.post`` after
hydration; callbacks receive an Event and may return a value.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Event:
    """A triggered event as seen by callbacks."""

    name: str
    target: Any
    params: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[Event], Any]


class EventManager:
    """Priority-ordered callback registry keyed by event name.

    Higher priorities run first; equal priorities run in attach order.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[int, int, Listener]]] = {}
        self._sequence = 0

    def attach(self, event: str, callback: Listener, priority: int = 0) -> Listener:
        """Register a callback and return it (usable as a decorator target)."""
        self._sequence += 1
        listeners = self._listeners.setdefault(event, [])
        listeners.append((-priority, self._sequence, callback))
        listeners.sort(key=lambda item: (item[0], item[1]))
        return callback

    def detach(self, event: str, callback: Listener) -> bool:
        """Remove a callback. Returns True if it was registered."""
        listeners = self._listeners.get(event, [])
        for index, (_, _, registered) in enumerate(listeners):
            if registered is callback:
                del listeners[index]
                return True
        return False

    def trigger(self, event: str, target: Any = None, **params: Any) -> list[Any]:
        """Run every callback for ``event`` and collect their results."""
        listeners = list(self._listeners.get(event, []))
        if not listeners:
            return []
        logger.debug("event_triggered", event=event, listeners=len(listeners))
        payload = Event(name=event, target=target, params=params)
        return [callback(payload) for _, _, callback in listeners]

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    def clear(self, event: str | None = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
