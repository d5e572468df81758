"""
Support Notification Channels

Adapters behind the NotificationDispatcher:
- InAppNotificationCenter: dashboard bell notifications
- EmailNotifier: renders emails and hands them to a transport

Email subjects always carry [TICKET-CODE] so that replies can be
routed back to the ticket by the inbound email webhook.
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.ticket import (
    Notification,
    NewTicket,
    StatusChanged,
    NewComment,
    Requester,
    TicketEvent,
    TicketStatus
)
from ..utils.logger import get_logger
from .dispatcher import NotificationChannel, NotificationDispatcher
from .errors import InvalidInputError, NotFoundError

logger = get_logger(__name__)


STATUS_LABELS: Dict[TicketStatus, str] = {
    TicketStatus.OPEN: "Nouveau",
    TicketStatus.IN_PROGRESS: "En cours",
    TicketStatus.WAITING: "En attente",
    TicketStatus.RESOLVED: "Résolu",
    TicketStatus.CLOSED: "Fermé",
    TicketStatus.CANCELLED: "Annulé",
}


def is_requester(requester: Requester, actor: str) -> bool:
    """True when actor (email or user id) designates the requester."""
    if requester.id and actor == requester.id:
        return True
    return actor.strip().lower() == requester.email.strip().lower()


def ticket_link(ticket_id: UUID) -> str:
    return f"/dashboard/support/tickets?id={ticket_id}"


# =============================================================================
# IN-APP
# =============================================================================

class InAppNotificationCenter(NotificationChannel):
    """
    Stores dashboard notifications.

    - New ticket: every support manager
    - Status change: requester, unless they made the change
    - Public comment: requester, unless they wrote it
    """

    name = "in_app"

    def __init__(self, managers: Sequence[str] = ()):
        self.managers = list(managers)
        self._notifications: List[Notification] = []

    def handle(self, event: TicketEvent) -> None:
        if isinstance(event, NewTicket):
            for manager in self.managers:
                self._add(Notification(
                    recipient=manager,
                    type="ticket_created",
                    title=f"Nouveau billet: {event.ticket_code}",
                    message=(
                        f"{event.requester.display_name} a créé un billet "
                        f"[{event.priority.value}]: {event.subject}"
                    ),
                    link=ticket_link(event.ticket_id),
                    entity_id=event.ticket_id
                ))

        elif isinstance(event, StatusChanged):
            if is_requester(event.requester, event.actor):
                return
            self._add(Notification(
                recipient=event.requester.email,
                type="ticket_status",
                title=f"Billet {event.ticket_code}: {STATUS_LABELS[event.to_status]}",
                message=(
                    f"{event.actor} a changé le statut de « {event.subject} » "
                    f"à {STATUS_LABELS[event.to_status]}"
                ),
                link=ticket_link(event.ticket_id),
                entity_id=event.ticket_id
            ))

        elif isinstance(event, NewComment):
            if event.is_internal or is_requester(event.requester, event.author_email or event.author):
                return
            self._add(Notification(
                recipient=event.requester.email,
                type="ticket_comment",
                title=f"Nouvelle réponse: {event.ticket_code}",
                message=f"{event.author} a répondu à « {event.subject} »",
                link=ticket_link(event.ticket_id),
                entity_id=event.ticket_id
            ))

    def _add(self, notification: Notification) -> None:
        self._notifications.append(notification)

    def list_for(
        self,
        recipient: str,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Newest first."""
        if limit < 1:
            raise InvalidInputError(f"Invalid limit: {limit!r}. Expected a positive integer.")
        recipient = recipient.lower()
        items = [
            n for n in self._notifications
            if n.recipient.lower() == recipient and not (unread_only and n.read)
        ]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items[:limit]

    def mark_read(self, notification_id: UUID) -> Notification:
        for notification in self._notifications:
            if notification.id == notification_id:
                notification.read = True
                return notification
        raise NotFoundError(f"Notification {notification_id} not found")


# =============================================================================
# EMAIL
# =============================================================================

class EmailMessage(BaseModel):
    sender: str
    to: List[str]
    subject: str
    body: str
    headers: Dict[str, str] = Field(default_factory=dict)


EmailTransport = Callable[[EmailMessage], None]


class LoggingEmailTransport:
    """Writes emails to the log instead of sending them."""

    def __init__(self):
        self.sent: List[EmailMessage] = []

    def __call__(self, message: EmailMessage) -> None:
        self.sent.append(message)
        logger.info(f"Email to {', '.join(message.to)}: {message.subject}")


class EmailNotifier(NotificationChannel):
    """
    Renders ticket emails.

    - New ticket: alert to support managers + confirmation to requester
    - Status change: update to requester
    - Public comment from someone else: update to requester
    """

    name = "email"

    def __init__(
        self,
        transport: EmailTransport,
        sender: str,
        managers: Sequence[str] = ()
    ):
        self.transport = transport
        self.sender = sender
        self.managers = list(managers)

    def handle(self, event: TicketEvent) -> None:
        for message in self.render(event):
            self.transport(message)

    def render(self, event: TicketEvent) -> List[EmailMessage]:
        headers = {"X-Ticket-Code": event.ticket_code}

        if isinstance(event, NewTicket):
            messages = []
            if self.managers:
                messages.append(EmailMessage(
                    sender=self.sender,
                    to=self.managers,
                    subject=f"[{event.ticket_code}] Nouveau billet [{event.priority.value}]: {event.subject}",
                    body=(
                        f"{event.requester.display_name} <{event.requester.email}> "
                        f"a soumis un billet.\n\n"
                        f"Priorité: {event.priority.value}\n"
                        f"Sujet: {event.subject}\n"
                    ),
                    headers=headers
                ))
            messages.append(EmailMessage(
                sender=self.sender,
                to=[event.requester.email],
                subject=f"[{event.ticket_code}] Billet reçu: {event.subject}",
                body=(
                    f"Bonjour {event.requester.display_name},\n\n"
                    f"Votre billet {event.ticket_code} a bien été reçu.\n"
                    f"Répondez à ce courriel pour ajouter des informations.\n"
                ),
                headers=headers
            ))
            return messages

        if isinstance(event, StatusChanged):
            label = STATUS_LABELS[event.to_status]
            return [EmailMessage(
                sender=self.sender,
                to=[event.requester.email],
                subject=f"[{event.ticket_code}] Statut: {label}",
                body=(
                    f"Le statut de votre billet « {event.subject} » "
                    f"est maintenant: {label}.\n"
                ),
                headers=headers
            )]

        if isinstance(event, NewComment):
            if event.is_internal or is_requester(event.requester, event.author_email or event.author):
                return []
            return [EmailMessage(
                sender=self.sender,
                to=[event.requester.email],
                subject=f"[{event.ticket_code}] Nouvelle réponse: {event.subject}",
                body=f"{event.author} a écrit:\n\n{event.body}\n",
                headers=headers
            )]

        return []


def build_dispatcher(
    managers: Sequence[str],
    sender: str,
    transport: Optional[EmailTransport] = None
) -> Tuple[NotificationDispatcher, InAppNotificationCenter]:
    """Default notification stack: in-app + email."""
    in_app = InAppNotificationCenter(managers)
    email = EmailNotifier(transport or LoggingEmailTransport(), sender, managers)
    return NotificationDispatcher([in_app, email]), in_app
