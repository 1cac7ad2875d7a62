"""
Tests for the FastAPI application.

Each test runs against a fresh in-memory service injected through
dependency overrides.
"""

import pytest
from fastapi.testclient import TestClient

from deal_workflow.api import WorkflowService, WorkflowStorage, get_service
from deal_workflow.api.server import app


@pytest.fixture
def service():
    return WorkflowService(WorkflowStorage(), invite_base_url="https://app.example.com")


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def offer_id(client):
    resp = client.post("/api/offers", json={
        "offer_id": "OFR-1",
        "startup_id": "S-1",
        "investor_email": "ana@example.com",
        "amount": 250000,
        "equity_percentage": 8,
    })
    assert resp.status_code == 201
    return resp.json()["offer_id"]


def _decide(client, offer_id, role, decision="approve"):
    return client.post(
        f"/api/workflow/offer/{offer_id}/decision",
        json={"role": role, "decision": decision},
    )


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_enums(self, client):
        data = client.get("/api/enums").json()
        assert "investor_advisor" in data["roles"]
        assert data["decisions"] == ["approve", "reject"]


class TestOfferRoutes:
    """Test offer submission, gates and decisions over HTTP."""

    def test_create_offer(self, client, offer_id):
        data = client.get(f"/api/offers/{offer_id}").json()
        assert data["stage"] == 1
        assert data["stage_label"] == "Stage 1: Investor advisor approval"

    def test_create_offer_without_advisors(self, client):
        resp = client.post("/api/offers", json={
            "startup_id": "S-2",
            "investor_email": "ben@example.com",
            "amount": 100000,
            "equity_percentage": 5,
            "investor_has_advisor": False,
            "startup_has_advisor": False,
        })
        assert resp.status_code == 201
        assert resp.json()["stage"] == 3
        assert resp.json()["offer_id"].startswith("OFR-")

    def test_invalid_offer(self, client):
        resp = client.post("/api/offers", json={
            "startup_id": "S-1",
            "investor_email": "not-an-email",
            "amount": 100000,
            "equity_percentage": 5,
        })
        assert resp.status_code == 400
        assert resp.json()["field"] == "investor_email"

    def test_gate(self, client, offer_id):
        resp = client.get(f"/api/workflow/offer/{offer_id}/gate", params={"role": "investor_advisor"})
        assert resp.status_code == 200
        assert resp.json()["allowed"] is True

    def test_approval_chain_and_negotiate(self, client, offer_id):
        assert _decide(client, offer_id, "investor_advisor").json()["entity"]["stage"] == 2
        assert _decide(client, offer_id, "startup_advisor").json()["entity"]["stage"] == 3

        resp = client.post(f"/api/offers/{offer_id}/negotiate")
        assert resp.status_code == 200
        assert resp.json()["revealed"] is True
        assert resp.json()["entity"]["stage"] == 4

        again = client.post(f"/api/offers/{offer_id}/reveal")
        assert again.json()["revealed"] is False

    def test_repeat_decision_conflict(self, client, offer_id):
        _decide(client, offer_id, "investor_advisor")
        resp = _decide(client, offer_id, "investor_advisor")
        assert resp.status_code == 409
        assert resp.json()["error"] == "StaleStateError"

    def test_unauthorized_role(self, client, offer_id):
        resp = _decide(client, offer_id, "investor")
        assert resp.status_code == 403

    def test_unknown_offer(self, client):
        resp = _decide(client, "OFR-404", "investor_advisor")
        assert resp.status_code == 404

    def test_reveal_too_early(self, client, offer_id):
        assert client.post(f"/api/offers/{offer_id}/reveal").status_code == 409


class TestOpportunityRoutes:
    """Test co-investment routes."""

    def test_opportunity_and_co_offer(self, client):
        resp = client.post("/api/opportunities", json={
            "opportunity_id": "OPP-1",
            "startup_id": "S-1",
            "listed_by": "INV-LEAD",
            "investment_amount": 1000000,
            "minimum_co_investment": 25000,
            "maximum_co_investment": 400000,
        })
        assert resp.status_code == 201
        assert resp.json()["lead_investor_invested"] == 600000

        co = client.post("/api/opportunities/OPP-1/offers", json={
            "investor_email": "ben@example.com",
            "amount": 50000,
            "equity_percentage": 1,
        })
        assert co.status_code == 201
        co_id = co.json()["offer_id"]

        decision = client.post(
            f"/api/workflow/co_investment_offer/{co_id}/decision",
            json={"role": "investor_advisor", "decision": "approve"},
        )
        assert decision.json()["entity"]["status"] == "pending_lead_investor_approval"

        listed = client.get("/api/opportunities/OPP-1/offers").json()
        assert listed["count"] == 1

    def test_co_offer_out_of_band(self, client):
        client.post("/api/opportunities", json={
            "opportunity_id": "OPP-1",
            "startup_id": "S-1",
            "listed_by": "INV-LEAD",
            "investment_amount": 1000000,
            "minimum_co_investment": 25000,
            "maximum_co_investment": 400000,
        })
        resp = client.post("/api/opportunities/OPP-1/offers", json={
            "investor_email": "ben@example.com",
            "amount": 10,
            "equity_percentage": 1,
        })
        assert resp.status_code == 400


class TestMandateRoutes:
    """Test mandate CRUD and filtering."""

    @pytest.fixture
    def mandate_id(self, client):
        resp = client.post("/api/mandates", json={
            "owner_id": "ADV-1",
            "name": "Seed fintech",
            "domain": "fintech",
            "amount_min": 100000,
            "amount_max": 500000,
            "investor_ids": ["INV-1", "INV-2"],
        })
        assert resp.status_code == 201
        return resp.json()["mandate_id"]

    def test_crud(self, client, mandate_id):
        assert client.get("/api/mandates", params={"owner_id": "ADV-1"}).json()["count"] == 1

        resp = client.put(f"/api/mandates/{mandate_id}", json={"owner_id": "ADV-1", "name": "Renamed"})
        assert resp.status_code == 200
        assert client.get(f"/api/mandates/{mandate_id}").json()["name"] == "Renamed"

        assert client.delete(f"/api/mandates/{mandate_id}").status_code == 200
        assert client.get(f"/api/mandates/{mandate_id}").status_code == 404

    def test_invalid_mandate(self, client):
        resp = client.post("/api/mandates", json={
            "owner_id": "ADV-1",
            "name": "Bad",
            "amount_min": 500000,
            "amount_max": 100000,
        })
        assert resp.status_code == 400

    def test_filter(self, client, mandate_id):
        resp = client.post(f"/api/mandates/{mandate_id}/filter", json={
            "startups": [
                {"startup_id": "S-1", "sector": "Fintech", "investment_ask": 250000},
                {"startup_id": "S-2", "sector": "Fintech", "investment_ask": 99999},
                {"startup_id": "S-3", "sector": "FinTech", "investment_ask": 500000},
            ],
            "detailed": True,
        })
        data = resp.json()
        assert [s["startup_id"] for s in data["startups"]] == ["S-1", "S-3"]
        assert data["summary"]["failed"] == 1

    def test_members(self, client, mandate_id):
        data = client.get(f"/api/mandates/{mandate_id}/members").json()
        assert data["investor_ids"] == ["INV-1", "INV-2"]


class TestContactAndRecommendationRoutes:
    """Test contact reconciliation, invites and recommendations."""

    def test_reconcile(self, client):
        contact = client.post("/api/contacts", json={
            "owner_id": "ADV-1", "name": "Ana", "email": "Ana@Example.com",
        }).json()
        client.post("/api/platform-entities", json={
            "name": "Ana", "email": "ana@example.com", "owner_id": "ADV-1",
        })

        report = client.post("/api/contacts/reconcile", json={"owner_id": "ADV-1"}).json()
        assert report["retired"] == [contact["contact_id"]]
        assert client.get("/api/contacts", params={"owner_id": "ADV-1"}).json()["count"] == 0

    def test_invite(self, client):
        contact = client.post("/api/contacts", json={
            "owner_id": "ADV-1", "kind": "startup", "name": "Agrisense",
        }).json()

        first = client.post(f"/api/contacts/{contact['contact_id']}/invite").json()
        second = client.post(f"/api/contacts/{contact['contact_id']}/invite").json()

        assert first["should_send"] is True
        assert second["should_send"] is False
        assert first["link"].startswith("https://app.example.com/?page=register")

    def test_bad_contact_kind(self, client):
        resp = client.post("/api/contacts", json={"owner_id": "ADV-1", "kind": "alien", "name": "X"})
        assert resp.status_code == 400

    def test_recommend(self, client):
        client.post("/api/recommendations", json={
            "startup_id": "42", "owner_id": "ADV-1", "recipient_ids": ["2"],
        })
        resp = client.post("/api/recommendations", json={
            "startup_id": "42", "owner_id": "ADV-1", "recipient_ids": ["1", "2", "3"],
        })
        data = resp.json()
        assert set(data["created"]) == {"1", "3"}
        assert data["skipped"] == ["2"]

        listed = client.get("/api/recommendations", params={"owner_id": "ADV-1"}).json()
        assert listed["count"] == 3
