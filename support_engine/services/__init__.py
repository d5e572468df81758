"""
Support Engine Services

Core business logic for ticket management.
"""

from .errors import (
    SupportError,
    NotFoundError,
    InvalidInputError,
    IllegalTransitionError,
    UnauthorizedError,
)
from .categories import CategoryRegistry, DEFAULT_CATEGORIES, default_registry
from .priority import PriorityService, PriorityPolicy, PriorityScore, DEFAULT_POLICY
from .dispatcher import (
    Dispatcher,
    NullDispatcher,
    RecordingDispatcher,
    NotificationChannel,
    NotificationDispatcher,
)
from .lifecycle import TicketStateMachine, TRANSITIONS, SETTLED_STATUSES
from .notifications import (
    InAppNotificationCenter,
    EmailNotifier,
    EmailMessage,
    LoggingEmailTransport,
    build_dispatcher,
)
from .tickets import UNCHANGED, TicketService, TicketViews
from .inbound_email import InboundEmail, InboundEmailService, IngestResult

__all__ = [
    # Errors
    "SupportError", "NotFoundError", "InvalidInputError",
    "IllegalTransitionError", "UnauthorizedError",

    # Engine
    "CategoryRegistry", "DEFAULT_CATEGORIES", "default_registry",
    "PriorityService", "PriorityPolicy", "PriorityScore", "DEFAULT_POLICY",
    "TicketStateMachine", "TRANSITIONS", "SETTLED_STATUSES",

    # Dispatch
    "Dispatcher", "NullDispatcher", "RecordingDispatcher",
    "NotificationChannel", "NotificationDispatcher",
    "InAppNotificationCenter", "EmailNotifier", "EmailMessage",
    "LoggingEmailTransport", "build_dispatcher",

    # Request handling
    "TicketService", "TicketViews", "UNCHANGED",
    "InboundEmail", "InboundEmailService", "IngestResult",
]
