"""
Support Ticket Service

Request-handling layer around the engine:
- Validates submissions and classifies them (category + priority)
- Generates human-readable codes: TI-YYYYMMDD-NNNN
- Routes every status change through the state machine
- Appends comments, optionally changing status in the same call
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple, Union
from uuid import UUID

from ..models.ticket import (
    Comment,
    Impact,
    NewComment,
    NewTicket,
    Requester,
    Scope,
    StatusHistoryEntry,
    Ticket,
    TicketStatus,
    Urgency,
    utcnow
)
from ..utils.logger import get_logger
from .categories import CategoryRegistry
from .dispatcher import Dispatcher, NullDispatcher
from .errors import IllegalTransitionError, InvalidInputError, NotFoundError
from .lifecycle import SETTLED_STATUSES, TicketStateMachine
from .priority import PriorityService

logger = get_logger(__name__)


class TicketViews:
    ACTIVE = "active"
    HISTORY = "history"
    ALL = "all"


# Marks an omitted reclassify argument; None clears the subcategory.
UNCHANGED = object()


class TicketService:
    """
    Creates, lists and updates tickets.

    Collaborators are injected; the service itself holds no state
    besides them.
    """

    def __init__(
        self,
        ticket_repo,
        comment_repo,
        categories: CategoryRegistry,
        priority: PriorityService,
        state_machine: TicketStateMachine,
        dispatcher: Optional[Dispatcher] = None,
        code_prefix: str = "TI",
        min_subject_length: int = 10,
        min_description_length: int = 50,
        list_limit: int = 100
    ):
        self.ticket_repo = ticket_repo
        self.comment_repo = comment_repo
        self.categories = categories
        self.priority = priority
        self.state_machine = state_machine
        self.dispatcher = dispatcher or NullDispatcher()
        self.code_prefix = code_prefix
        self.min_subject_length = min_subject_length
        self.min_description_length = min_description_length
        self.list_limit = list_limit

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_ticket(
        self,
        requester: Requester,
        subject: str,
        description: str,
        category: str,
        impact: Union[Impact, str],
        scope: Union[Scope, str],
        urgency: Union[Urgency, str],
        subcategory: Optional[str] = None,
        site: Optional[str] = None,
        department: Optional[str] = None
    ) -> Ticket:
        """
        Submit a new ticket.

        Priority is computed once here. Use reclassify() to recompute
        it after the classification changes.
        """
        subject = (subject or "").strip()
        description = (description or "").strip()

        if len(subject) < self.min_subject_length:
            raise InvalidInputError(
                f"Subject must be at least {self.min_subject_length} characters."
            )
        if len(description) < self.min_description_length:
            raise InvalidInputError(
                f"Description must be at least {self.min_description_length} characters."
            )

        resolved = self._resolve_category(category, subcategory)
        score = self.priority.score(resolved.severity_weight, impact, scope, urgency)

        now = self.state_machine.clock()
        code = await self.next_code(now)

        ticket = Ticket(
            code=code,
            subject=subject,
            description=description,
            category=resolved.key,
            subcategory=subcategory,
            impact=impact,
            scope=scope,
            urgency=urgency,
            priority=score.tier,
            status=TicketStatus.OPEN,
            status_history=[StatusHistoryEntry(
                status=TicketStatus.OPEN,
                timestamp=now,
                actor=requester.email
            )],
            requester=requester,
            site=site,
            department=department,
            sla_target=self.priority.sla_target(score.tier, now),
            created_at=now,
            updated_at=now
        )

        await self.ticket_repo.save(ticket)
        logger.info(
            f"Ticket {code} created by {requester.email} "
            f"[{score.tier.value}, score={score.score}]"
        )

        self.dispatcher.notify(NewTicket(
            ticket_id=ticket.id,
            ticket_code=ticket.code,
            subject=ticket.subject,
            priority=ticket.priority,
            requester=ticket.requester
        ))

        return ticket

    async def next_code(self, now: Optional[datetime] = None) -> str:
        """
        Next free code for the day: PREFIX-YYYYMMDD-NNNN.

        Sequence = tickets created that UTC day + 1.
        """
        now = now or self.state_machine.clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)

        count = await self.ticket_repo.count_created_between(start_of_day, end_of_day)
        prefix = f"{self.code_prefix}-{now.strftime('%Y%m%d')}-"

        sequence = count + 1
        while await self._code_taken(f"{prefix}{sequence:04d}"):
            sequence += 1
        return f"{prefix}{sequence:04d}"

    async def _code_taken(self, code: str) -> bool:
        try:
            await self.ticket_repo.get_by_code(code)
        except NotFoundError:
            return False
        return True

    def _resolve_category(self, key: str, subcategory: Optional[str]):
        category = self.categories.lookup(key)
        if subcategory is not None:
            allowed = {s.value for s in category.subcategories}
            if subcategory not in allowed:
                raise InvalidInputError(
                    f"Unknown subcategory {subcategory!r} for category {key!r}."
                )
        return category

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_ticket(self, ticket_id: UUID) -> Ticket:
        return await self.ticket_repo.get(ticket_id)

    async def get_by_code(self, code: str) -> Ticket:
        return await self.ticket_repo.get_by_code(code)

    async def list_tickets(
        self,
        status: Optional[Union[TicketStatus, str]] = None,
        view: str = TicketViews.ACTIVE,
        requester_email: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Ticket]:
        """
        List tickets, newest first.

        An explicit status wins over the view:
        - active: everything not yet settled
        - history: resolved, closed, cancelled
        - all: no status filter
        """
        if limit is not None and limit < 1:
            raise InvalidInputError(f"Invalid limit: {limit!r}. Expected a positive integer.")

        if status is not None:
            try:
                statuses = {TicketStatus(status)}
            except ValueError:
                raise InvalidInputError(f"Invalid status: {status!r}") from None
        elif view == TicketViews.HISTORY:
            statuses = set(SETTLED_STATUSES)
        elif view == TicketViews.ACTIVE:
            statuses = set(TicketStatus) - SETTLED_STATUSES
        elif view == TicketViews.ALL:
            statuses = None
        else:
            raise InvalidInputError(f"Invalid view: {view!r}")

        return await self.ticket_repo.list(
            statuses=statuses,
            requester_email=requester_email,
            limit=min(limit or self.list_limit, self.list_limit)
        )

    # =========================================================================
    # Updates
    # =========================================================================

    async def change_status(
        self,
        ticket_id: UUID,
        target: Union[TicketStatus, str],
        actor: str
    ) -> Ticket:
        ticket = await self.ticket_repo.get(ticket_id)
        self.state_machine.transition(ticket, target, actor)
        await self.ticket_repo.save(ticket)
        return ticket

    async def assign(
        self,
        ticket_id: UUID,
        assignee: Optional[str],
        actor: str
    ) -> Ticket:
        ticket = await self.ticket_repo.get(ticket_id)
        ticket.assignee = assignee
        ticket.updated_at = max(self.state_machine.clock(), ticket.updated_at)
        await self.ticket_repo.save(ticket)
        logger.info(f"Ticket {ticket.code} assigned to {assignee or 'nobody'} by {actor}")
        return ticket

    async def reclassify(
        self,
        ticket_id: UUID,
        actor: str,
        category: Optional[str] = None,
        subcategory=UNCHANGED,
        impact: Optional[Union[Impact, str]] = None,
        scope: Optional[Union[Scope, str]] = None,
        urgency: Optional[Union[Urgency, str]] = None
    ) -> Ticket:
        """
        Apply classification edits and recompute priority.

        Idempotent: calling it without changes recomputes the same tier.
        The SLA target is recomputed from the creation time.

        subcategory=None clears it. When omitted, it is kept unless the
        category changes.
        """
        if category is not None and not category.strip():
            raise InvalidInputError("Category cannot be empty.")

        ticket = await self.ticket_repo.get(ticket_id)
        if ticket.status in SETTLED_STATUSES:
            raise InvalidInputError(
                f"Ticket {ticket.code} is {ticket.status.value} and cannot be reclassified."
            )

        new_category = category if category is not None else ticket.category
        if subcategory is not UNCHANGED:
            new_subcategory = subcategory
        elif new_category != ticket.category:
            new_subcategory = None
        else:
            new_subcategory = ticket.subcategory

        resolved = self._resolve_category(new_category, new_subcategory)
        score = self.priority.score(
            resolved.severity_weight,
            impact if impact is not None else ticket.impact,
            scope if scope is not None else ticket.scope,
            urgency if urgency is not None else ticket.urgency
        )

        previous = ticket.priority
        ticket.category = resolved.key
        ticket.subcategory = new_subcategory
        ticket.impact = Impact(impact) if impact is not None else ticket.impact
        ticket.scope = Scope(scope) if scope is not None else ticket.scope
        ticket.urgency = Urgency(urgency) if urgency is not None else ticket.urgency
        ticket.priority = score.tier
        ticket.sla_target = self.priority.sla_target(score.tier, ticket.created_at)
        ticket.updated_at = max(self.state_machine.clock(), ticket.updated_at)

        await self.ticket_repo.save(ticket)
        logger.info(
            f"Ticket {ticket.code} reclassified by {actor}: "
            f"{previous.value} → {score.tier.value}"
        )
        return ticket

    # =========================================================================
    # Comments
    # =========================================================================

    async def add_comment(
        self,
        ticket_id: UUID,
        author: str,
        body: str,
        author_email: Optional[str] = None,
        is_internal: bool = False,
        new_status: Optional[Union[TicketStatus, str]] = None
    ) -> Tuple[Comment, Ticket]:
        """
        Append a comment, optionally moving the ticket to new_status.

        The status change is validated before anything is written.
        """
        body = (body or "").strip()
        if not body:
            raise InvalidInputError("Comment body is required.")

        ticket = await self.ticket_repo.get(ticket_id)

        target = None
        if new_status is not None:
            try:
                target = TicketStatus(new_status)
            except ValueError:
                raise InvalidInputError(f"Invalid status: {new_status!r}") from None
            if not self.state_machine.can_transition(ticket.status, target):
                raise IllegalTransitionError(ticket.status, target)

        comment = Comment(
            ticket_id=ticket.id,
            author=author,
            author_email=author_email,
            body=body,
            is_internal=is_internal,
            created_at=max(self.state_machine.clock(), ticket.updated_at)
        )
        await self.comment_repo.add(comment)

        self.dispatcher.notify(NewComment(
            ticket_id=ticket.id,
            ticket_code=ticket.code,
            subject=ticket.subject,
            comment_id=comment.id,
            author=author,
            author_email=author_email,
            body=body,
            is_internal=is_internal,
            requester=ticket.requester
        ))

        if target is not None:
            self.state_machine.transition(ticket, target, author_email or author)
        else:
            ticket.updated_at = comment.created_at
        await self.ticket_repo.save(ticket)

        return comment, ticket

    async def list_comments(
        self,
        ticket_id: UUID,
        include_internal: bool = True
    ) -> List[Comment]:
        await self.ticket_repo.get(ticket_id)
        return await self.comment_repo.list_for_ticket(ticket_id, include_internal)
