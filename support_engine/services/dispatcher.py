"""
Support Event Dispatcher

The engine asks for side effects (emails, in-app notifications) through
a Dispatcher. It never waits on, retries or inspects the outcome.
Delivery failures stay inside the dispatcher.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from ..models.ticket import TicketEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class Dispatcher(ABC):
    """Capability injected into the engine to request notifications."""

    @abstractmethod
    def notify(self, event: TicketEvent) -> None:
        ...


class NullDispatcher(Dispatcher):
    """Drops every event."""

    def notify(self, event: TicketEvent) -> None:
        return None


class RecordingDispatcher(Dispatcher):
    """Keeps every event in memory. Used by tests."""

    def __init__(self):
        self.events: List[TicketEvent] = []

    def notify(self, event: TicketEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> List[TicketEvent]:
        return [e for e in self.events if e.kind == kind]


class NotificationChannel(ABC):
    """A transport adapter (email, in-app, webhook)."""

    name = "channel"

    @abstractmethod
    def handle(self, event: TicketEvent) -> None:
        ...


class NotificationDispatcher(Dispatcher):
    """
    Fans events out to every channel.

    A failing channel is logged and skipped; the remaining channels
    still receive the event and the caller never sees the error.
    """

    def __init__(self, channels: Sequence[NotificationChannel]):
        self.channels = list(channels)

    def notify(self, event: TicketEvent) -> None:
        for channel in self.channels:
            try:
                channel.handle(event)
            except Exception:
                logger.exception(
                    f"Channel {channel.name} failed to deliver {event.kind} "
                    f"for ticket {event.ticket_code}"
                )
