"""
Support Ticket Lifecycle

Open → In progress → Waiting ⇄ In progress → Resolved → Closed
Cancelled is reachable from Open or In progress.

Every status change goes through transition(). Anything that is not an
edge of TRANSITIONS is refused, including moving to the current status.
"""

from datetime import datetime
from types import MappingProxyType
from typing import Callable, FrozenSet, Mapping, Optional, Union

from ..models.ticket import (
    Ticket,
    TicketStatus,
    StatusHistoryEntry,
    StatusChanged,
    utcnow
)
from ..utils.logger import get_logger
from .dispatcher import Dispatcher, NullDispatcher
from .errors import IllegalTransitionError, InvalidInputError

logger = get_logger(__name__)


TRANSITIONS: Mapping[TicketStatus, FrozenSet[TicketStatus]] = MappingProxyType({
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED}),
    TicketStatus.IN_PROGRESS: frozenset({
        TicketStatus.WAITING,
        TicketStatus.RESOLVED,
        TicketStatus.CANCELLED,
    }),
    TicketStatus.WAITING: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
})

# Settled tickets no longer count as active work
SETTLED_STATUSES: FrozenSet[TicketStatus] = frozenset({
    TicketStatus.RESOLVED,
    TicketStatus.CLOSED,
    TicketStatus.CANCELLED,
})


class TicketStateMachine:
    """
    Enforces legal status transitions and records them.

    The machine performs no locking: callers must serialize
    transitions on the same ticket.
    """

    def __init__(
        self,
        dispatcher: Optional[Dispatcher] = None,
        transitions: Mapping[TicketStatus, FrozenSet[TicketStatus]] = TRANSITIONS,
        clock: Callable[[], datetime] = utcnow
    ):
        self.dispatcher = dispatcher or NullDispatcher()
        self.transitions = transitions
        self.clock = clock

    def allowed_targets(self, current: TicketStatus) -> FrozenSet[TicketStatus]:
        return self.transitions.get(current, frozenset())

    def can_transition(self, current: TicketStatus, target: TicketStatus) -> bool:
        return target in self.allowed_targets(current)

    def is_terminal(self, status: TicketStatus) -> bool:
        return not self.allowed_targets(status)

    def transition(
        self,
        ticket: Ticket,
        target: Union[TicketStatus, str],
        actor: str
    ) -> Ticket:
        """
        Move ticket to target status.

        Validation happens before any mutation, so a refused
        transition leaves the ticket exactly as it was.
        """
        try:
            target = TicketStatus(target)
        except ValueError:
            raise InvalidInputError(f"Invalid status: {target!r}") from None

        current = ticket.status
        if not self.can_transition(current, target):
            raise IllegalTransitionError(current, target)

        now = self.clock()
        if ticket.status_history and now < ticket.status_history[-1].timestamp:
            now = ticket.status_history[-1].timestamp

        ticket.status_history.append(
            StatusHistoryEntry(status=target, timestamp=now, actor=actor)
        )
        ticket.status = target
        ticket.updated_at = now

        if target == TicketStatus.RESOLVED and ticket.resolved_at is None:
            ticket.resolved_at = now
        if target == TicketStatus.CLOSED and ticket.closed_at is None:
            ticket.closed_at = now

        logger.info(
            f"Ticket {ticket.code}: {current.value} → {target.value} by {actor}"
        )

        self.dispatcher.notify(StatusChanged(
            ticket_id=ticket.id,
            ticket_code=ticket.code,
            subject=ticket.subject,
            from_status=current,
            to_status=target,
            actor=actor,
            requester=ticket.requester
        ))

        return ticket
