"""
Minimal publish/subscribe channel. Handlers may be plain callables or
coroutine functions; a failing handler is logged and does not stop delivery
to the others.
"""

import inspect
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class EventChannel:
    """Ordered list of subscribers for one kind of event."""

    def __init__(self, name: str):
        self.name = name
        self._handlers: List[Callable[..., Any]] = []

    def subscribe(self, handler: Callable[..., Any]) -> Callable[[], None]:
        """Register ``handler``; returns a callable that removes it again."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, *args: Any) -> None:
        """Deliver an event to every subscriber in registration order."""
        for handler in list(self._handlers):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Event handler failed on channel {self.name}: {e}",
                    exc_info=True,
                )
