# controllers/state.py
"""Observable state holder shared by the flow controllers."""

import asyncio
import logging
from typing import Callable, Generic, List, Set, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")

Listener = Callable[[S], None]


class StateStream(Generic[S]):
    """
    Current state value plus change notification.

    Only the owning controller calls ``publish``. Readers get the current value,
    synchronous listeners, or an async iterator of subsequent states.
    """

    def __init__(self, initial: S):
        self._value = initial
        self._listeners: List[Listener] = []
        self._queues: Set[asyncio.Queue] = set()

    @property
    def value(self) -> S:
        return self._value

    def publish(self, state: S) -> None:
        self._value = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                # a broken observer must not break the flow
                logger.exception("State listener failed")
        for queue in self._queues:
            queue.put_nowait(state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def stream(self):
        """Yield the current state, then every published state."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.add(queue)
        try:
            yield self._value
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)
