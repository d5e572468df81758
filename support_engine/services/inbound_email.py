"""
Support Inbound Email Service

Turns email replies into ticket comments.

Works with any provider that can POST the parsed message
(SendGrid Inbound Parse, Mailgun routes, SES + Lambda...).
The ticket is found through its code: [TI-YYYYMMDD-NNNN] in the subject.
"""

import hmac
import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.ticket import Comment, Ticket, TicketStatus
from ..utils.logger import get_logger
from .errors import InvalidInputError, UnauthorizedError
from .notifications import is_requester
from .tickets import TicketService

logger = get_logger(__name__)


TICKET_CODE_PATTERN = re.compile(r"\[?([A-Z]+-\d{8}-\d{4})\]?", re.IGNORECASE)

REPLY_DELIMITERS = [
    re.compile(r"^.*On\s+.+wrote:.*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^.*Le\s+\d+.*a écrit\s*:.*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^-{3,}.*Original Message.*-{3,}.*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^-{3,}.*Message original.*-{3,}.*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^From:.*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^De\s*:.*$", re.IGNORECASE | re.MULTILINE),
]


class InboundEmail(BaseModel):
    """Parsed email as posted by the provider."""
    sender: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    ticket_code: Optional[str] = Field(None, alias="ticketCode")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "InboundEmail":
        """
        Build from a JSON body or form fields.

        Providers disagree on field names: "sender" stands in for
        "from" and "plain" for "text". File parts are ignored.
        """
        def first(*keys: str) -> Optional[str]:
            for key in keys:
                value = payload.get(key)
                if isinstance(value, str) and value:
                    return value
            return None

        return cls(
            sender=first("from", "sender"),
            to=first("to"),
            subject=first("subject"),
            text=first("text", "plain"),
            html=first("html"),
            ticket_code=first("ticketCode", "ticket_code")
        )


class IngestResult(BaseModel):
    ticket_code: str
    comment_id: str
    sender: str
    status: TicketStatus
    resumed: bool = False


# =============================================================================
# Parsing helpers
# =============================================================================

def extract_ticket_code(subject: Optional[str], prefix: str = "TI") -> Optional[str]:
    """Find PREFIX-YYYYMMDD-NNNN in a subject line."""
    if not subject:
        return None
    for match in TICKET_CODE_PATTERN.finditer(subject):
        code = match.group(1).upper()
        if code.startswith(f"{prefix.upper()}-"):
            return code
    return None


def extract_email(from_field: str) -> Optional[str]:
    """
    "John Doe <john@example.com>" or "john@example.com" → john@example.com
    """
    match = re.search(r"<([^>]+)>", from_field) or re.search(r"([^\s<>]+@[^\s<>]+)", from_field)
    return match.group(1).strip().lower() if match else None


def extract_name(from_field: str) -> Optional[str]:
    match = re.match(r'^"?([^"<]+)"?\s*<', from_field)
    return match.group(1).strip() if match else None


def extract_reply_content(content: str) -> str:
    """
    Keep only the new part of a reply.

    Strips HTML, cuts at the first quoted-reply delimiter, drops
    "> " quoted lines and a trailing "-- " signature.
    """
    text = re.sub(r"<br\s*/?>|</p>|</div>", "\n", content, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]*>", " ", text)
    text = "\n".join(re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines())
    text = text.strip()

    for delimiter in REPLY_DELIMITERS:
        match = delimiter.search(text)
        if match:
            text = text[:match.start()].strip()
            break

    lines = [line for line in text.split("\n") if not line.strip().startswith(">")]
    text = "\n".join(lines).strip()

    signature = re.search(r"\n--\s*\n", text)
    if signature:
        text = text[:signature.start()].strip()

    return text


# =============================================================================
# Service
# =============================================================================

class InboundEmailService:
    """
    Appends email replies to their ticket.

    - Replies are always public comments
    - A requester reply on a waiting ticket resumes it (in_progress)
    - Replies on settled tickets are recorded, status unchanged
    """

    def __init__(
        self,
        ticket_service: TicketService,
        webhook_secret: str,
        code_prefix: str = "TI"
    ):
        self.tickets = ticket_service
        self.webhook_secret = webhook_secret
        self.code_prefix = code_prefix

    def verify_secret(self, provided: Optional[str]) -> None:
        if not self.webhook_secret or not provided or not hmac.compare_digest(
            provided.encode(), self.webhook_secret.encode()
        ):
            logger.warning("Invalid or missing webhook secret")
            raise UnauthorizedError("Invalid or missing webhook secret")

    async def ingest(self, email: InboundEmail) -> IngestResult:
        logger.info(
            f"Email webhook received: from={email.sender} subject={email.subject!r}"
        )

        code = (email.ticket_code or "").upper() or extract_ticket_code(
            email.subject, self.code_prefix
        )
        if not code:
            logger.warning(f"No ticket code found in email subject: {email.subject!r}")
            raise InvalidInputError("No ticket code found in subject line")

        ticket = await self.tickets.get_by_code(code)

        sender = extract_email(email.sender or "")
        if not sender:
            logger.warning(f"Could not extract sender email from: {email.sender!r}")
            raise InvalidInputError("Invalid sender email")

        content = extract_reply_content(email.text or email.html or "")
        if not content:
            logger.warning(f"Empty reply content for ticket {code}")
            raise InvalidInputError("Empty reply content")

        from_requester = is_requester(ticket.requester, sender)
        author = extract_name(email.sender or "") or (
            ticket.requester.display_name if from_requester else sender
        )

        new_status = None
        if from_requester and ticket.status == TicketStatus.WAITING:
            new_status = TicketStatus.IN_PROGRESS

        comment, ticket = await self.tickets.add_comment(
            ticket.id,
            author=author,
            author_email=sender,
            body=content,
            is_internal=False,
            new_status=new_status
        )

        if new_status is not None:
            logger.info(f"Ticket {code} resumed after requester reply")
        logger.info(f"Email reply added to ticket {code} from {sender}")

        return self._result(ticket, comment, sender, resumed=new_status is not None)

    def _result(
        self,
        ticket: Ticket,
        comment: Comment,
        sender: str,
        resumed: bool
    ) -> IngestResult:
        return IngestResult(
            ticket_code=ticket.code,
            comment_id=str(comment.id),
            sender=sender,
            status=ticket.status,
            resumed=resumed
        )
