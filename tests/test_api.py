"""
Tests for the HTTP API
"""
from uuid import uuid4

import pytest

from tests.conftest import LONG_DESCRIPTION, WEBHOOK_SECRET


@pytest.fixture
def ticket_body() -> dict:
    return {
        "requester": {"email": "marie.tremblay@example.com", "name": "Marie Tremblay"},
        "subject": "VPN keeps dropping",
        "description": LONG_DESCRIPTION,
        "category": "reseau",
        "subcategory": "vpn",
        "impact": "high",
        "scope": "department",
        "urgency": "immediate",
        "site": "granby-siege",
        "department": "comptabilite",
    }


@pytest.fixture
def created(client, ticket_body) -> dict:
    response = client.post("/tickets", json=ticket_body)
    assert response.status_code == 201
    return response.json()


class TestHealthAndClassification:
    """Health check, categories and priority preview"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "support-engine"
        assert data["uptime_seconds"] >= 0

    def test_categories(self, client):
        data = client.get("/categories").json()
        assert [c["key"] for c in data["categories"]][0] == "materiel"

    def test_priority_preview(self, client):
        response = client.post("/priority/preview", json={
            "category": "reseau",
            "impact": "high",
            "scope": "department",
            "urgency": "immediate",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 13
        assert data["tier"] == "urgent"
        assert data["sla_hours"] == 2

    def test_priority_preview_unknown_category(self, client):
        response = client.post("/priority/preview", json={
            "category": "nonexistent-category",
            "impact": "high",
            "scope": "department",
            "urgency": "immediate",
        })
        assert response.status_code == 404


class TestTicketEndpoints:
    """Ticket CRUD and lifecycle"""

    def test_create(self, created):
        assert created["priority"] == "urgent"
        assert created["status"] == "open"
        assert created["code"].startswith("TI-")

    def test_create_short_subject(self, client, ticket_body):
        ticket_body["subject"] = "VPN"
        response = client.post("/tickets", json=ticket_body)
        assert response.status_code == 400
        assert "Subject" in response.json()["detail"]

    def test_create_unknown_category(self, client, ticket_body):
        ticket_body["category"] = "nonexistent-category"
        assert client.post("/tickets", json=ticket_body).status_code == 404

    def test_create_invalid_enum(self, client, ticket_body):
        ticket_body["impact"] = "catastrophic"
        assert client.post("/tickets", json=ticket_body).status_code == 422

    def test_next_code(self, client, created):
        next_code = client.get("/tickets/next-code").json()["next_code"]
        assert next_code[:-4] == created["code"][:-4]
        assert int(next_code[-4:]) == int(created["code"][-4:]) + 1

    def test_get(self, client, created):
        response = client.get(f"/tickets/{created['id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["ticket"]["code"] == created["code"]
        assert data["comments"] == []
        assert data["allowed_statuses"] == ["in_progress", "cancelled"]

    def test_get_unknown(self, client):
        assert client.get(f"/tickets/{uuid4()}").status_code == 404

    def test_list(self, client, created):
        data = client.get("/tickets").json()
        assert [t["id"] for t in data] == [created["id"]]
        assert data[0]["comments_count"] == 0
        assert client.get("/tickets", params={"view": "history"}).json() == []

    @pytest.mark.parametrize("limit", [0, -1])
    def test_list_rejects_non_positive_limit(self, client, ticket_body, limit):
        for _ in range(3):
            client.post("/tickets", json=ticket_body)
        response = client.get("/tickets", params={"limit": limit})
        assert response.status_code == 422

    def test_change_status(self, client, created):
        response = client.post(
            f"/tickets/{created['id']}/status",
            json={"status": "in_progress", "actor": "tech@example.com"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"
        assert len(response.json()["status_history"]) == 2

    def test_illegal_status_is_conflict(self, client, created):
        response = client.post(
            f"/tickets/{created['id']}/status",
            json={"status": "closed", "actor": "tech@example.com"}
        )
        assert response.status_code == 409

    def test_self_loop_is_conflict(self, client, created):
        response = client.patch(
            f"/tickets/{created['id']}",
            json={"status": "open", "actor": "tech@example.com"}
        )
        assert response.status_code == 409

    def test_patch_status_and_assignee(self, client, created):
        response = client.patch(
            f"/tickets/{created['id']}",
            json={"status": "in_progress", "assignee": "tech@example.com", "actor": "it.lead@example.com"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "in_progress"
        assert data["assignee"] == "tech@example.com"

    def test_refused_patch_changes_nothing(self, client, created):
        client.patch(
            f"/tickets/{created['id']}",
            json={"status": "resolved", "assignee": "tech@example.com", "actor": "it.lead@example.com"}
        )
        ticket = client.get(f"/tickets/{created['id']}").json()["ticket"]
        assert ticket["status"] == "open"
        assert ticket["assignee"] is None

    def test_reclassify(self, client, created):
        response = client.post(
            f"/tickets/{created['id']}/reclassify",
            json={"actor": "it.lead@example.com", "urgency": "low", "impact": "low", "scope": "individual"}
        )
        assert response.status_code == 200
        assert response.json()["priority"] == "low"
        assert response.json()["subcategory"] == "vpn"

    def test_reclassify_clears_subcategory(self, client, created):
        response = client.post(
            f"/tickets/{created['id']}/reclassify",
            json={"actor": "it.lead@example.com", "subcategory": None}
        )
        assert response.status_code == 200
        assert response.json()["category"] == "reseau"
        assert response.json()["subcategory"] is None

    def test_reclassify_empty_category(self, client, created):
        response = client.post(
            f"/tickets/{created['id']}/reclassify",
            json={"actor": "it.lead@example.com", "category": ""}
        )
        assert response.status_code == 400
        assert client.get(f"/tickets/{created['id']}").json()["ticket"]["subcategory"] == "vpn"


class TestComments:
    """Comment endpoints"""

    def test_add_and_list(self, client, created):
        response = client.post(
            f"/tickets/{created['id']}/comments",
            json={
                "author": "Tech",
                "author_email": "tech@example.com",
                "body": "Taking this one.",
                "new_status": "in_progress",
            }
        )
        assert response.status_code == 201
        assert response.json()["status"] == "in_progress"

        comments = client.get(f"/tickets/{created['id']}/comments").json()
        assert [c["body"] for c in comments] == ["Taking this one."]

    def test_internal_comments_hidden_on_request(self, client, created):
        client.post(
            f"/tickets/{created['id']}/comments",
            json={"author": "Tech", "body": "Check the firewall logs", "is_internal": True}
        )
        response = client.get(
            f"/tickets/{created['id']}/comments", params={"include_internal": False}
        )
        assert response.json() == []

    def test_empty_comment(self, client, created):
        response = client.post(
            f"/tickets/{created['id']}/comments", json={"author": "Tech", "body": " "}
        )
        assert response.status_code == 400


class TestNotificationEndpoints:
    """In-app notifications and outgoing email"""

    def test_managers_notified_of_new_ticket(self, client, created, email_transport):
        items = client.get("/notifications", params={"recipient": "it.lead@example.com"}).json()
        assert len(items) == 1
        assert items[0]["type"] == "ticket_created"
        assert any(created["code"] in m.subject for m in email_transport.sent)

    def test_requester_notified_of_status_change(self, client, created):
        client.post(
            f"/tickets/{created['id']}/status",
            json={"status": "in_progress", "actor": "tech@example.com"}
        )
        items = client.get(
            "/notifications", params={"recipient": "marie.tremblay@example.com"}
        ).json()
        assert [n["type"] for n in items] == ["ticket_status"]

        response = client.post(f"/notifications/{items[0]['id']}/read")
        assert response.status_code == 200
        assert response.json()["read"] is True

    def test_mark_unknown_notification(self, client):
        assert client.post(f"/notifications/{uuid4()}/read").status_code == 404

    @pytest.mark.parametrize("limit", [0, -1])
    def test_list_rejects_non_positive_limit(self, client, created, limit):
        response = client.get(
            "/notifications", params={"recipient": "it.lead@example.com", "limit": limit}
        )
        assert response.status_code == 422


class TestEmailWebhook:
    """Inbound email webhook"""

    def test_status(self, client):
        assert client.get("/support/email-webhook").json()["ok"] is True

    def test_requires_secret(self, client, created):
        response = client.post("/support/email-webhook", json={
            "from": "marie.tremblay@example.com",
            "subject": f"Re: [{created['code']}]",
            "text": "Hello",
        })
        assert response.status_code == 401

    def test_adds_comment(self, client, created):
        response = client.post(
            "/support/email-webhook",
            headers={"X-Webhook-Secret": WEBHOOK_SECRET},
            json={
                "from": "Marie Tremblay <marie.tremblay@example.com>",
                "subject": f"Re: [{created['code']}] Billet reçu",
                "text": "It happened again this morning.",
            }
        )
        assert response.status_code == 200
        assert response.json()["data"]["ticket_code"] == created["code"]

        comments = client.get(f"/tickets/{created['id']}/comments").json()
        assert comments[0]["body"] == "It happened again this morning."

    def test_urlencoded_form(self, client, created):
        response = client.post(
            "/support/email-webhook",
            headers={"X-Webhook-Secret": WEBHOOK_SECRET},
            data={
                "sender": "Marie Tremblay <marie.tremblay@example.com>",
                "subject": f"Re: [{created['code']}] Billet reçu",
                "plain": "Still broken after the reboot.",
            }
        )
        assert response.status_code == 200
        assert response.json()["data"]["sender"] == "marie.tremblay@example.com"

        comments = client.get(f"/tickets/{created['id']}/comments").json()
        assert comments[0]["body"] == "Still broken after the reboot."

    def test_multipart_form(self, client, created):
        response = client.post(
            "/support/email-webhook",
            headers={"X-Webhook-Secret": WEBHOOK_SECRET},
            data={
                "from": "tech@example.com",
                "subject": f"Re: [{created['code']}]",
                "text": "Replaced the router.",
            },
            files={"attachment1": ("log.txt", b"trace", "text/plain")}
        )
        assert response.status_code == 200
        assert response.json()["data"]["ticket_code"] == created["code"]

        comments = client.get(f"/tickets/{created['id']}/comments").json()
        assert comments[0]["author_email"] == "tech@example.com"

    def test_form_requires_secret(self, client, created):
        response = client.post(
            "/support/email-webhook",
            data={"from": "marie.tremblay@example.com", "subject": f"[{created['code']}]", "text": "Hi"}
        )
        assert response.status_code == 401

    def test_malformed_body(self, client):
        response = client.post(
            "/support/email-webhook",
            headers={"X-Webhook-Secret": WEBHOOK_SECRET, "Content-Type": "application/json"},
            content=b"not json"
        )
        assert response.status_code == 400

    def test_no_code(self, client):
        response = client.post(
            "/support/email-webhook",
            headers={"X-Webhook-Secret": WEBHOOK_SECRET},
            json={"from": "marie.tremblay@example.com", "subject": "Help", "text": "Hello"}
        )
        assert response.status_code == 400
