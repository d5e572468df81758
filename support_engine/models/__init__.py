"""
Support Engine Models

Tickets, comments, notifications and the events the engine dispatches.
"""

from .ticket import (
    # Enums
    Impact,
    Scope,
    Urgency,
    PriorityTier,
    TicketStatus,

    # Core models
    Category,
    Subcategory,
    Requester,
    StatusHistoryEntry,
    Ticket,
    Comment,
    Notification,

    # Events
    NewTicket,
    StatusChanged,
    NewComment,
    TicketEvent,

    utcnow,
)

__all__ = [
    "Impact", "Scope", "Urgency", "PriorityTier", "TicketStatus",
    "Category", "Subcategory", "Requester", "StatusHistoryEntry", "Ticket", "Comment",
    "Notification",
    "NewTicket", "StatusChanged", "NewComment", "TicketEvent",
    "utcnow",
]
