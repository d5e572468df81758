"""
Support Ticket Model

Core principles:
1. Ticket = Request for help submitted by an employee
2. Priority is DERIVED from classification (category, impact, scope, urgency)
3. Status only moves through the lifecycle state machine
4. Comments are append-only and belong to their ticket
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Literal, Tuple, Union
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class Impact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Scope(str, Enum):
    INDIVIDUAL = "individual"      # Only the requester
    TEAM = "team"                  # Immediate team
    DEPARTMENT = "department"      # Whole department
    ORGANIZATION = "organization"  # Several departments


class Urgency(str, Enum):
    LOW = "low"              # Can wait a few days
    MEDIUM = "medium"        # Important, not blocking
    HIGH = "high"            # Blocks my work
    IMMEDIATE = "immediate"  # Production stopped


class PriorityTier(str, Enum):
    LOW = "low"        # SLA 72h
    NORMAL = "normal"  # SLA 24h
    HIGH = "high"      # SLA 4h
    URGENT = "urgent"  # SLA 2h


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"      # Waiting on requester
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"


# =============================================================================
# CORE MODELS
# =============================================================================

class Subcategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class Category(BaseModel):
    """
    Ticket category with its base severity weight.

    Defined once at process start, never mutated.
    """
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    severity_weight: int = Field(..., ge=0)
    subcategories: Tuple[Subcategory, ...] = ()


class Requester(BaseModel):
    """Employee who raised the ticket."""
    id: Optional[str] = None
    email: str
    name: str = ""
    phone: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


class StatusHistoryEntry(BaseModel):
    status: TicketStatus
    timestamp: datetime
    actor: str


class Ticket(BaseModel):
    """
    The core ticket entity.

    priority is computed at creation and only recomputed on explicit
    reclassification. status_history always ends with the current status.
    """
    id: UUID = Field(default_factory=uuid4)
    code: str = Field(..., description="Human-readable ID, e.g. TI-20240115-0003")

    subject: str
    description: str

    # Classification
    category: str
    subcategory: Optional[str] = None
    impact: Impact
    scope: Scope
    urgency: Urgency
    priority: PriorityTier

    # Lifecycle
    status: TicketStatus = TicketStatus.OPEN
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)

    # People & location
    requester: Requester
    assignee: Optional[str] = None
    site: Optional[str] = None
    department: Optional[str] = None

    # SLA
    sla_target: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class Comment(BaseModel):
    """
    Message on a ticket. Append-only.

    Internal comments are hidden from the requester and never emailed.
    """
    id: UUID = Field(default_factory=uuid4)
    ticket_id: UUID

    author: str
    author_email: Optional[str] = None
    body: str
    is_internal: bool = False

    created_at: datetime = Field(default_factory=utcnow)


class Notification(BaseModel):
    """In-app notification shown in the dashboard bell."""
    id: UUID = Field(default_factory=uuid4)
    recipient: str

    type: str  # ticket_created, ticket_status, ticket_comment
    title: str
    message: str
    link: Optional[str] = None
    entity_id: Optional[UUID] = None

    read: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# EVENTS
# =============================================================================

class NewTicket(BaseModel):
    kind: Literal["new_ticket"] = "new_ticket"
    ticket_id: UUID
    ticket_code: str
    subject: str
    priority: PriorityTier
    requester: Requester


class StatusChanged(BaseModel):
    kind: Literal["status_changed"] = "status_changed"
    ticket_id: UUID
    ticket_code: str
    subject: str
    from_status: TicketStatus
    to_status: TicketStatus
    actor: str
    requester: Requester


class NewComment(BaseModel):
    kind: Literal["new_comment"] = "new_comment"
    ticket_id: UUID
    ticket_code: str
    subject: str
    comment_id: UUID
    author: str
    author_email: Optional[str] = None
    body: str
    is_internal: bool
    requester: Requester


TicketEvent = Union[NewTicket, StatusChanged, NewComment]
