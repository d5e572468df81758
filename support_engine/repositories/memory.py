"""
In-memory repositories.

Same async interface a database-backed repository exposes, so services
can be wired to either.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from ..models.ticket import Comment, Ticket, TicketStatus
from ..services.errors import NotFoundError


class InMemoryTicketRepository:
    """Tickets keyed by id, with a unique code index."""

    def __init__(self):
        self._tickets: Dict[UUID, Ticket] = {}
        self._by_code: Dict[str, UUID] = {}

    async def get(self, ticket_id: UUID) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def get_by_code(self, code: str) -> Ticket:
        ticket_id = self._by_code.get(code.upper())
        if ticket_id is None:
            raise NotFoundError(f"Ticket {code} not found")
        return self._tickets[ticket_id]

    async def save(self, ticket: Ticket) -> Ticket:
        self._tickets[ticket.id] = ticket
        self._by_code[ticket.code.upper()] = ticket.id
        return ticket

    async def list(
        self,
        statuses: Optional[Iterable[TicketStatus]] = None,
        requester_email: Optional[str] = None,
        limit: int = 100
    ) -> List[Ticket]:
        """Newest first."""
        wanted = set(statuses) if statuses is not None else None
        email = requester_email.lower() if requester_email else None

        tickets = [
            t for t in self._tickets.values()
            if (wanted is None or t.status in wanted)
            and (email is None or t.requester.email.lower() == email)
        ]
        tickets.sort(key=lambda t: t.created_at, reverse=True)
        return tickets[:limit]

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        return sum(1 for t in self._tickets.values() if start <= t.created_at < end)


class InMemoryCommentRepository:
    """Append-only comment log."""

    def __init__(self):
        self._comments: List[Comment] = []

    async def add(self, comment: Comment) -> Comment:
        self._comments.append(comment)
        return comment

    async def list_for_ticket(
        self,
        ticket_id: UUID,
        include_internal: bool = True
    ) -> List[Comment]:
        """Oldest first."""
        comments = [
            c for c in self._comments
            if c.ticket_id == ticket_id and (include_internal or not c.is_internal)
        ]
        comments.sort(key=lambda c: c.created_at)
        return comments

    async def count_for_ticket(self, ticket_id: UUID) -> int:
        return sum(1 for c in self._comments if c.ticket_id == ticket_id)
