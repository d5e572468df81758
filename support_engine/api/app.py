"""
Support Engine API

FastAPI application with:
- Ticket submission with automatic priority
- Status lifecycle enforcement
- Comments and in-app notifications
- Inbound email replies
"""

import time
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, Header, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..config import Settings, get_settings
from ..models import (
    Comment,
    Impact,
    Notification,
    PriorityTier,
    Requester,
    Scope,
    Ticket,
    TicketStatus,
    Urgency
)
from ..repositories import InMemoryCommentRepository, InMemoryTicketRepository
from ..services import (
    CategoryRegistry,
    IllegalTransitionError,
    InboundEmail,
    InboundEmailService,
    InvalidInputError,
    NotFoundError,
    PriorityService,
    SupportError,
    TicketService,
    TicketStateMachine,
    UNCHANGED,
    UnauthorizedError,
    build_dispatcher,
    default_registry
)
from ..services.notifications import EmailTransport
from ..utils.logger import get_logger

logger = get_logger(__name__)

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateTicketRequest(BaseModel):
    requester: Requester
    subject: str
    description: str
    category: str
    subcategory: Optional[str] = None
    impact: Impact
    scope: Scope
    urgency: Urgency
    site: Optional[str] = None
    department: Optional[str] = None


class UpdateTicketRequest(BaseModel):
    actor: str
    status: Optional[TicketStatus] = None
    assignee: Optional[str] = None


class ChangeStatusRequest(BaseModel):
    status: TicketStatus
    actor: str


class ReclassifyRequest(BaseModel):
    actor: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    impact: Optional[Impact] = None
    scope: Optional[Scope] = None
    urgency: Optional[Urgency] = None


class AddCommentRequest(BaseModel):
    author: str
    author_email: Optional[str] = None
    body: str
    is_internal: bool = False
    new_status: Optional[TicketStatus] = None


class PriorityPreviewRequest(BaseModel):
    category: str
    impact: Impact
    scope: Scope
    urgency: Urgency


class PriorityPreviewResponse(BaseModel):
    category_weight: int
    impact_weight: int
    scope_weight: int
    urgency_weight: int
    score: int
    tier: PriorityTier
    sla_hours: int


class TicketSummary(BaseModel):
    id: UUID
    code: str
    subject: str
    category: str
    subcategory: Optional[str] = None
    priority: PriorityTier
    status: TicketStatus
    requester: Requester
    assignee: Optional[str] = None
    site: Optional[str] = None
    department: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    comments_count: int = 0


class TicketDetail(BaseModel):
    ticket: Ticket
    comments: List[Comment] = Field(default_factory=list)
    allowed_statuses: List[TicketStatus] = Field(default_factory=list)


class CommentResponse(BaseModel):
    comment: Comment
    status: TicketStatus


# =============================================================================
# APP SETUP
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    categories: Optional[CategoryRegistry] = None,
    email_transport: Optional[EmailTransport] = None
) -> FastAPI:
    """
    Build the application with its services wired in.

    Services live on app.state so tests can reach them.
    """
    settings = settings or get_settings()
    categories = categories or default_registry()

    dispatcher, in_app = build_dispatcher(
        managers=settings.manager_recipients,
        sender=settings.support_email_from,
        transport=email_transport
    )
    priority = PriorityService()
    state_machine = TicketStateMachine(dispatcher=dispatcher)
    tickets = TicketService(
        ticket_repo=InMemoryTicketRepository(),
        comment_repo=InMemoryCommentRepository(),
        categories=categories,
        priority=priority,
        state_machine=state_machine,
        dispatcher=dispatcher,
        code_prefix=settings.ticket_code_prefix,
        min_subject_length=settings.min_subject_length,
        min_description_length=settings.min_description_length,
        list_limit=settings.ticket_list_limit
    )
    inbound = InboundEmailService(
        tickets,
        webhook_secret=settings.email_webhook_secret,
        code_prefix=settings.ticket_code_prefix
    )

    app = FastAPI(
        title="Support Engine",
        description="IT support ticketing with priority tiers and lifecycle enforcement",
        version=__version__
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.started_at = time.time()
    app.state.categories = categories
    app.state.priority = priority
    app.state.tickets = tickets
    app.state.inbound = inbound
    app.state.notifications = in_app
    app.state.dispatcher = dispatcher

    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    status_codes = [
        (NotFoundError, status.HTTP_404_NOT_FOUND),
        (InvalidInputError, status.HTTP_400_BAD_REQUEST),
        (IllegalTransitionError, status.HTTP_409_CONFLICT),
        (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    ]

    @app.exception_handler(SupportError)
    async def support_error_handler(request: Request, exc: SupportError):
        code = status.HTTP_400_BAD_REQUEST
        for error_type, error_code in status_codes:
            if isinstance(exc, error_type):
                code = error_code
                break
        logger.warning(f"{request.method} {request.url.path} → {code}: {exc}")
        return JSONResponse(status_code=code, content={"detail": str(exc)})


def _summary(ticket: Ticket, comments_count: int) -> TicketSummary:
    return TicketSummary(
        id=ticket.id,
        code=ticket.code,
        subject=ticket.subject,
        category=ticket.category,
        subcategory=ticket.subcategory,
        priority=ticket.priority,
        status=ticket.status,
        requester=ticket.requester,
        assignee=ticket.assignee,
        site=ticket.site,
        department=ticket.department,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        comments_count=comments_count
    )


def _register_routes(app: FastAPI) -> None:
    tickets: TicketService = app.state.tickets
    inbound: InboundEmailService = app.state.inbound

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "support-engine",
            "version": __version__,
            "uptime_seconds": round(time.time() - app.state.started_at, 2)
        }

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    @app.get("/categories")
    async def list_categories():
        return {"categories": [c.model_dump() for c in app.state.categories.all()]}

    @app.post("/priority/preview", response_model=PriorityPreviewResponse)
    async def preview_priority(request: PriorityPreviewRequest):
        """
        Priority the form would get, shown before submission.
        """
        category = app.state.categories.lookup(request.category)
        score = app.state.priority.score(
            category.severity_weight, request.impact, request.scope, request.urgency
        )
        return PriorityPreviewResponse(
            category_weight=score.category_weight,
            impact_weight=score.impact_weight,
            scope_weight=score.scope_weight,
            urgency_weight=score.urgency_weight,
            score=score.score,
            tier=score.tier,
            sla_hours=score.sla_hours
        )

    # =========================================================================
    # TICKET ENDPOINTS
    # =========================================================================

    @app.post("/tickets", status_code=status.HTTP_201_CREATED, response_model=Ticket)
    async def create_ticket(request: CreateTicketRequest):
        """
        Submit a ticket. Priority and SLA target are computed here.
        """
        return await tickets.create_ticket(
            requester=request.requester,
            subject=request.subject,
            description=request.description,
            category=request.category,
            subcategory=request.subcategory,
            impact=request.impact,
            scope=request.scope,
            urgency=request.urgency,
            site=request.site,
            department=request.department
        )

    @app.get("/tickets", response_model=List[TicketSummary])
    async def list_tickets(
        status: Optional[TicketStatus] = None,
        view: str = "active",
        requester: Optional[str] = None,
        limit: Optional[int] = Query(None, ge=1)
    ):
        """
        Active tickets by default; view=history for settled ones.
        """
        found = await tickets.list_tickets(
            status=status, view=view, requester_email=requester, limit=limit
        )
        return [
            _summary(t, await tickets.comment_repo.count_for_ticket(t.id))
            for t in found
        ]

    @app.get("/tickets/next-code")
    async def next_ticket_code():
        return {"next_code": await tickets.next_code()}

    @app.get("/tickets/{ticket_id}", response_model=TicketDetail)
    async def get_ticket(ticket_id: UUID, include_internal: bool = True):
        ticket = await tickets.get_ticket(ticket_id)
        comments = await tickets.list_comments(ticket_id, include_internal)
        return TicketDetail(
            ticket=ticket,
            comments=comments,
            allowed_statuses=sorted(
                tickets.state_machine.allowed_targets(ticket.status),
                key=lambda s: list(TicketStatus).index(s)
            )
        )

    @app.patch("/tickets/{ticket_id}", response_model=Ticket)
    async def update_ticket(ticket_id: UUID, request: UpdateTicketRequest):
        """
        Update status and/or assignee. The status change is applied first;
        if it is refused nothing is changed.
        """
        ticket = await tickets.get_ticket(ticket_id)
        if request.status is not None:
            ticket = await tickets.change_status(ticket_id, request.status, request.actor)
        if "assignee" in request.model_fields_set:
            ticket = await tickets.assign(ticket_id, request.assignee, request.actor)
        return ticket

    @app.post("/tickets/{ticket_id}/status", response_model=Ticket)
    async def change_status(ticket_id: UUID, request: ChangeStatusRequest):
        return await tickets.change_status(ticket_id, request.status, request.actor)

    @app.post("/tickets/{ticket_id}/reclassify", response_model=Ticket)
    async def reclassify_ticket(ticket_id: UUID, request: ReclassifyRequest):
        """
        Apply classification edits and recompute priority.

        Send "subcategory": null to clear the subcategory.
        """
        subcategory = (
            request.subcategory if "subcategory" in request.model_fields_set else UNCHANGED
        )
        return await tickets.reclassify(
            ticket_id,
            actor=request.actor,
            category=request.category,
            subcategory=subcategory,
            impact=request.impact,
            scope=request.scope,
            urgency=request.urgency
        )

    @app.get("/tickets/{ticket_id}/comments", response_model=List[Comment])
    async def list_comments(ticket_id: UUID, include_internal: bool = True):
        return await tickets.list_comments(ticket_id, include_internal)

    @app.post(
        "/tickets/{ticket_id}/comments",
        status_code=status.HTTP_201_CREATED,
        response_model=CommentResponse
    )
    async def add_comment(ticket_id: UUID, request: AddCommentRequest):
        comment, ticket = await tickets.add_comment(
            ticket_id,
            author=request.author,
            author_email=request.author_email,
            body=request.body,
            is_internal=request.is_internal,
            new_status=request.new_status
        )
        return CommentResponse(comment=comment, status=ticket.status)

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    @app.get("/notifications", response_model=List[Notification])
    async def list_notifications(
        recipient: str,
        unread_only: bool = False,
        limit: int = Query(50, ge=1)
    ):
        return app.state.notifications.list_for(recipient, unread_only, limit)

    @app.post("/notifications/{notification_id}/read", response_model=Notification)
    async def mark_notification_read(notification_id: UUID):
        return app.state.notifications.mark_read(notification_id)

    # =========================================================================
    # INBOUND EMAIL
    # =========================================================================

    @app.post("/support/email-webhook")
    async def email_webhook(
        request: Request,
        x_webhook_secret: Optional[str] = Header(None)
    ):
        """
        Receive an email reply and add it to its ticket.

        Accepts JSON, multipart/form-data and urlencoded forms.
        """
        inbound.verify_secret(x_webhook_secret)

        content_type = request.headers.get("content-type", "").lower()
        if content_type.startswith(FORM_CONTENT_TYPES):
            payload = await request.form()
        else:
            try:
                payload = await request.json()
            except ValueError:
                raise InvalidInputError("Request body must be JSON or form data") from None
            if not isinstance(payload, dict):
                raise InvalidInputError("Request body must be a JSON object")

        result = await inbound.ingest(InboundEmail.from_payload(payload))
        return {"ok": True, "data": result.model_dump()}

    @app.get("/support/email-webhook")
    async def email_webhook_status():
        return {
            "ok": True,
            "message": "Email webhook endpoint is active",
            "usage": "POST email data with ticket code in subject line"
        }


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)
