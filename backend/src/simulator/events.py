from __future__ import annotations

from collections import deque
from typing import Callable, Deque, List, Union

from .schemas import ChatEvent, StatsEvent

SimulatorEvent = Union[ChatEvent, StatsEvent]
Subscriber = Callable[[SimulatorEvent], None]


class EventChannel:
    """
    FIFO channel between the driver and whatever renders the chat.

    publish() delivers synchronously to subscribers in registration order and
    appends to a pull buffer that drain() empties.
    """

    def __init__(self, max_buffer: int = 500) -> None:
        self._subscribers: List[Subscriber] = []
        self._buffer: Deque[SimulatorEvent] = deque(maxlen=max_buffer)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: SimulatorEvent) -> None:
        self._buffer.append(event)
        for callback in list(self._subscribers):
            callback(event)

    def drain(self) -> List[SimulatorEvent]:
        events = list(self._buffer)
        self._buffer.clear()
        return events

    def __len__(self) -> int:
        return len(self._buffer)
