# controllers/base.py
"""Common plumbing for the flow controllers: state stream, task tracking, teardown."""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

from controllers.state import StateStream
from services.errors import FlowClosedError

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


class FlowController(Generic[S]):
    """
    Single logical actor over one state value.

    Entry points run their remote work as tasks tracked here so ``leave`` can
    cancel them. Once left, the controller never publishes again.
    """

    def __init__(self, initial: S):
        self._stream: StateStream[S] = StateStream(initial)
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    # --- read-only surface for the rendering layer ---
    @property
    def state(self) -> S:
        return self._stream.value

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Callable[[S], None]) -> Callable[[], None]:
        return self._stream.subscribe(listener)

    def states(self):
        return self._stream.stream()

    # --- internals ---
    def _publish(self, state: S) -> None:
        if self._closed:
            logger.debug(f"{type(self).__name__} closed; dropping {state!r}")
            return
        logger.debug(f"{type(self).__name__} -> {getattr(state, 'status', state)}")
        self._stream.publish(state)

    def _ensure_open(self) -> None:
        if self._closed:
            raise FlowClosedError(f"{type(self).__name__} has been left")

    async def _run(
        self,
        coro: Awaitable[T],
        on_failure: Callable[[BaseException], S],
    ) -> Optional[T]:
        """
        Run ``coro`` as a tracked task.

        A cancellation caused by ``leave`` is absorbed. Any other cancellation
        or unexpected exception publishes ``on_failure(exc)`` before it
        propagates, so the controller never stays in a busy state.
        """
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError as e:
            if self._closed and task.cancelled():
                logger.info(f"{type(self).__name__}: in-flight work cancelled")
                return None
            logger.warning(f"{type(self).__name__}: in-flight work interrupted")
            self._publish(on_failure(e))
            raise
        except Exception as e:
            logger.exception(f"{type(self).__name__}: unexpected failure: {e}")
            self._publish(on_failure(e))
            raise
        finally:
            self._tasks.discard(task)

    def leave(self) -> None:
        """Cancel in-flight work and stop publishing. Idempotent."""
        if self._closed:
            return
        self._closed = True
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        logger.info(
            f"{type(self).__name__} left with {len(pending)} in-flight task(s) cancelled"
        )
