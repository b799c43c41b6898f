"""In-process "event added" notifications"""
import inspect
from typing import Any, Awaitable, Callable, List, Union

from opensea_wrapper.models.event import Event

Listener = Callable[[Event], Union[Any, Awaitable[Any]]]


class EventAddedNotifier:
    """Fan out every newly stored Event to its subscribers, in subscription order."""

    def __init__(self):
        self.listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Listener:
        self.listeners.append(listener)
        return listener

    async def notify(self, event: Event) -> None:
        for listener in self.listeners:
            result = listener(event)
            if inspect.isawaitable(result):
                await result
