"""API integration tests for the Debt Negotiation Engine."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.models.enums import Intent
from src.main import create_app

FILLED = {"Your Name": "Jane Doe", "Your Address": "1 Main St", "Account Number": "AC-778"}


def _postmark_payload(message_id: str, body: str, subject: str = "Past due balance") -> dict:
    return {
        "MessageID": message_id,
        "From": "Acme Billing <Billing@Acme-Collections.com>",
        "FromFull": {"Email": "Billing@Acme-Collections.com", "Name": "Acme Billing"},
        "To": "owner@example.com",
        "ToFull": [{"Email": "owner@example.com", "Name": ""}],
        "Subject": subject,
        "TextBody": body,
    }


NOTICE_BODY = "Our records show a past due balance of $1,200.00 on your account."


@pytest.fixture
def client(container):
    """Create test client around the rule-based container."""
    return TestClient(create_app(container=container))


def _create_debt(client) -> str:
    response = client.post(
        "/webhooks/inbound-email", json=_postmark_payload("<notice-1@acme>", NOTICE_BODY)
    )
    assert response.status_code == 200
    return response.json()["debt_id"]


def _sent_debt(client) -> str:
    debt_id = _create_debt(client)
    client.put(f"/debts/{debt_id}/variables", json={"values": FILLED})
    client.post(f"/debts/{debt_id}/approve")
    assert client.post(f"/debts/{debt_id}/send").json()["delivered"] is True
    return debt_id


class TestHealthEndpoint:
    def test_health_without_llm_is_degraded(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["provider"] is None
        assert data["mail_configured"] is True
        assert set(data["component_fallback_counts"]) == {
            "response_classifier",
            "opt_out_detector",
            "strategy_generator",
            "debt_notice_parser",
        }
        assert "uptime_seconds" in data

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestInboundWebhook:
    def test_notice_creates_debt(self, client):
        response = client.post(
            "/webhooks/inbound-email", json=_postmark_payload("<notice-1@acme>", NOTICE_BODY)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "created"
        assert data["status"] == "negotiating"
        assert data["negotiation_generated"] is True

        debt = client.get(f"/debts/{data['debt_id']}").json()
        assert debt["creditor_email"] == "billing@acme-collections.com"
        assert debt["extension"]["letter"]["strategy"] == "installment"

    def test_duplicate_message_id(self, client):
        payload = _postmark_payload("<notice-1@acme>", NOTICE_BODY)
        client.post("/webhooks/inbound-email", json=payload)

        response = client.post("/webhooks/inbound-email", json=payload)

        assert response.json()["action"] == "duplicate"

    def test_unparseable_notice_is_400(self, client):
        response = client.post(
            "/webhooks/inbound-email", json=_postmark_payload("<x@acme>", "Call us back.")
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["request_id"]

    def test_html_only_body(self, client):
        payload = _postmark_payload("<html-1@acme>", "")
        del payload["TextBody"]
        payload["HtmlBody"] = "<p>Balance due: <b>$300.00</b></p>"

        response = client.post("/webhooks/inbound-email", json=payload)

        assert response.status_code == 200
        debt = client.get(f"/debts/{response.json()['debt_id']}").json()
        assert debt["amount"] == 300.0

    def test_missing_from_is_422(self, client):
        response = client.post("/webhooks/inbound-email", json={"To": "owner@example.com"})

        assert response.status_code == 422


class TestDebtEndpoints:
    def test_full_letter_workflow(self, client, mailer):
        debt_id = _create_debt(client)

        variables = client.get(f"/debts/{debt_id}/variables").json()
        assert set(variables["unfilled"]) == set(FILLED)

        response = client.put(f"/debts/{debt_id}/variables", json={"values": FILLED})
        assert response.json()["unfilled"] == []

        response = client.post(f"/debts/{debt_id}/approve", json={"note": "ok"})
        assert response.json()["status"] == "approved"

        response = client.post(f"/debts/{debt_id}/send")
        assert response.status_code == 200
        assert response.json()["delivered"] is True
        assert response.json()["status"] == "sent"
        assert len(mailer.sent) == 1

        messages = client.get(f"/debts/{debt_id}/messages").json()
        assert [m["direction"] for m in messages] == ["inbound", "outbound"]

        audit = client.get(f"/debts/{debt_id}/audit").json()
        assert [a["action"] for a in audit][-2:] == ["debt_approved", "email_sent"]

    def test_send_with_unfilled_variables_is_422(self, client):
        debt_id = _create_debt(client)
        client.post(f"/debts/{debt_id}/approve")

        response = client.post(f"/debts/{debt_id}/send")

        assert response.status_code == 422
        assert response.json()["error_code"] == "UNFILLED_VARIABLES"

    def test_invalid_transition_is_409(self, client):
        debt_id = _create_debt(client)

        response = client.post(f"/debts/{debt_id}/send")

        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_TRANSITION"

    def test_unknown_debt_is_404(self, client):
        response = client.get("/debts/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_unknown_variable_is_400(self, client):
        debt_id = _create_debt(client)

        response = client.put(f"/debts/{debt_id}/variables", json={"values": {"Nope": "x"}})

        assert response.status_code == 400

    def test_edit_letter_and_regenerate(self, client):
        debt_id = _create_debt(client)

        response = client.put(
            f"/debts/{debt_id}/letter",
            json={"subject": "Plan", "body": "Hi,\n\n{{ Your Name }}"},
        )
        assert response.status_code == 200
        assert client.get(f"/debts/{debt_id}/variables").json()["variables"] == {"Your Name": ""}

        response = client.post(f"/debts/{debt_id}/negotiate")
        assert response.status_code == 200
        assert response.json()["extension"]["letter"]["subject"].startswith("Payment Plan")

    def test_confirm_acceptance_after_review(self, client):
        debt_id = _sent_debt(client)
        reply = client.post(
            "/webhooks/inbound-email",
            json=_postmark_payload("<reply-1@acme>", "We accept your payment plan."),
        )
        assert reply.json()["status"] == "requires_manual_review"

        response = client.post(f"/debts/{debt_id}/confirm-acceptance")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "settled"
        assert data["actual_savings"] == 120.0

    def test_confirm_acceptance_requires_review_status(self, client):
        debt_id = _create_debt(client)

        response = client.post(
            f"/debts/{debt_id}/confirm-acceptance", json={"terms": {"proposed_amount": 900.0}}
        )

        assert response.status_code == 409

    def test_fail(self, client):
        debt_id = _create_debt(client)

        response = client.post(f"/debts/{debt_id}/fail", json={"reason": "paid directly"})

        assert response.json()["status"] == "failed"


class TestAnalysisEndpoints:
    def test_analyze_response_for_sent_debt(self, client, container):
        debt_id = _sent_debt(client)

        response = client.post(
            "/analyze-response",
            json={
                "debt_id": debt_id,
                "message_id": "<reply-1@acme>",
                "from_email": "billing@acme-collections.com",
                "subject": "Re: Payment Plan Proposal",
                "body": "We reject this proposal.",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["analysis"]["intent"] == "rejection"
        assert data["status"] == "rejected"

    def test_analyze_response_with_known_message_id_is_duplicate(self, client):
        debt_id = _sent_debt(client)

        response = client.post(
            "/analyze-response",
            json={
                "debt_id": debt_id,
                "message_id": "delivery-1",
                "from_email": "billing@acme-collections.com",
                "body": "We reject this proposal.",
            },
        )

        assert response.json()["action"] == "duplicate"
        debt = client.get(f"/debts/{debt_id}").json()
        assert debt["status"] == "sent"
        assert debt["conversation_count"] == 2

    def test_analyze_response_requires_in_flight_debt(self, client):
        debt_id = _create_debt(client)

        response = client.post(
            "/analyze-response",
            json={
                "debt_id": debt_id,
                "message_id": "<reply-1@acme>",
                "from_email": "billing@acme-collections.com",
                "body": "We accept.",
            },
        )

        assert response.status_code == 409

    def test_extraction_preview(self, client):
        response = client.post(
            "/test-extraction",
            json={"body": "We can accept $250 per month for 18 months instead."},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["intent"] == "acceptance"
        assert data["source"] == "fallback"
        assert data["extracted_terms"]["payment_terms"]["monthly_amount"] == 250.0

    def test_extraction_preview_uses_classifier(self, client, container, make_analysis):
        classifier = MagicMock()
        classifier.run = AsyncMock(return_value=make_analysis(Intent.COUNTER_OFFER))
        container.service.classifier = classifier

        response = client.post("/test-extraction", json={"body": "How about $900?"})

        assert response.json()["intent"] == "counter_offer"
        classifier.run.assert_awaited_once()
