"""
Pytest configuration and fixtures
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from support_engine.api.app import create_app
from support_engine.config import Settings
from support_engine.models import (
    Impact,
    PriorityTier,
    Requester,
    Scope,
    StatusHistoryEntry,
    Ticket,
    TicketStatus,
    Urgency
)
from support_engine.repositories import InMemoryCommentRepository, InMemoryTicketRepository
from support_engine.services import (
    LoggingEmailTransport,
    PriorityService,
    RecordingDispatcher,
    TicketService,
    TicketStateMachine,
    default_registry
)

WEBHOOK_SECRET = "test-webhook-secret"

LONG_DESCRIPTION = (
    "Since this morning the VPN disconnects every few minutes and I cannot "
    "reach the shared drives from home."
)


class FakeClock:
    """Controllable clock; advances only when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def priority() -> PriorityService:
    return PriorityService()


@pytest.fixture
def recorder() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def state_machine(recorder, clock) -> TicketStateMachine:
    return TicketStateMachine(dispatcher=recorder, clock=clock)


@pytest.fixture
def requester() -> Requester:
    return Requester(id="user-42", email="marie.tremblay@example.com", name="Marie Tremblay")


@pytest.fixture
def make_ticket(requester, clock):
    """Build a ticket already sitting in the given status."""

    def _make(status: TicketStatus = TicketStatus.OPEN, code: str = "TI-20240115-0001") -> Ticket:
        return Ticket(
            code=code,
            subject="VPN keeps dropping",
            description=LONG_DESCRIPTION,
            category="reseau",
            impact=Impact.HIGH,
            scope=Scope.DEPARTMENT,
            urgency=Urgency.IMMEDIATE,
            priority=PriorityTier.URGENT,
            status=status,
            status_history=[StatusHistoryEntry(
                status=status, timestamp=clock(), actor=requester.email
            )],
            requester=requester,
            created_at=clock(),
            updated_at=clock()
        )

    return _make


@pytest.fixture
def ticket_service(registry, priority, state_machine, recorder) -> TicketService:
    return TicketService(
        ticket_repo=InMemoryTicketRepository(),
        comment_repo=InMemoryCommentRepository(),
        categories=registry,
        priority=priority,
        state_machine=state_machine,
        dispatcher=recorder
    )


@pytest.fixture
def ticket_payload(requester) -> dict:
    return {
        "requester": requester,
        "subject": "VPN keeps dropping",
        "description": LONG_DESCRIPTION,
        "category": "reseau",
        "subcategory": "vpn",
        "impact": Impact.HIGH,
        "scope": Scope.DEPARTMENT,
        "urgency": Urgency.IMMEDIATE,
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        email_webhook_secret=WEBHOOK_SECRET,
        support_managers="it.lead@example.com, helpdesk@example.com",
        support_email_from="support@example.com"
    )


@pytest.fixture
def email_transport() -> LoggingEmailTransport:
    return LoggingEmailTransport()


@pytest.fixture
def app(settings, email_transport):
    return create_app(settings=settings, email_transport=email_transport)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
