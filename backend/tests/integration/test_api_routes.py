# tests/integration/test_api_routes.py
"""
HTTP API against the running app (in-memory store)

Coverage:
- Health and root endpoints
- Lead ingestion, scoring, status, journey and follow-ups
- Task status transitions
- CRM sync accept + status
- Competitor changes, alerts, playbooks and monitoring controls
- Error mapping (404 / 422)

Run with: pytest tests/integration/test_api_routes.py -v
"""

import pytest
from uuid import uuid4

PIPELINE = "/api/v1/pipeline"
COMPETITORS = "/api/v1/competitors"

CANDIDATE = {
    "email": "Alex@TechStartup.com",
    "name": "Alex Johnson",
    "company": "TechStartup Inc",
    "intent_score": 78,
    "keywords": ["competitive analysis"],
    "source": "lead_locator",
}

CONFIG = {
    "competitor_id": "comp_1",
    "competitor_name": "Acme Analytics",
    "delivery_channels": ["email"],
}


def _process(client, **overrides):
    response = client.post(f"{PIPELINE}/leads/process", json={**CANDIDATE, **overrides})
    assert response.status_code == 201
    return response.json()


# ============================================================================
# TEST: App
# ============================================================================

@pytest.mark.integration
def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["registered_tables"] >= 8
    assert data["monitoring"] is False


@pytest.mark.integration
def test_root(client):
    assert client.get("/").json()["docs"] == "/docs"


# ============================================================================
# TEST: Leads
# ============================================================================

@pytest.mark.integration
class TestLeadRoutes:

    def test_process_creates_then_merges(self, client):
        first = _process(client)
        assert first["is_new"] is True
        assert first["lead"]["email"] == "alex@techstartup.com"
        assert [t["category"] for t in first["tasks"]] == ["nurturing"]

        second = _process(client, intent_score=60, source="campaign_manager")
        assert second["is_new"] is False
        assert second["lead"]["id"] == first["lead"]["id"]
        assert second["lead"]["intent_score"] == 78

        sources = client.get(f"{PIPELINE}/leads/{first['lead']['id']}/sources").json()
        assert len(sources) == 2

    def test_process_without_identity_is_rejected(self, client):
        response = client.post(f"{PIPELINE}/leads/process", json={"name": "Nobody", "source": "lead_locator"})

        assert response.status_code == 422

    def test_score_crossing(self, client):
        lead_id = _process(client)["lead"]["id"]

        response = client.post(f"{PIPELINE}/leads/{lead_id}/score", json={"activity_type": "demo_request"})

        assert response.status_code == 200
        assert response.json() == {
            "lead_id": lead_id, "old_score": 78, "new_score": 93, "crossed_high_intent": True
        }

        again = client.post(f"{PIPELINE}/leads/{lead_id}/score", json={"activity_type": "email_engagement"})
        assert again.json()["crossed_high_intent"] is False

    def test_status_journey_and_follow_ups(self, client):
        lead_id = _process(client)["lead"]["id"]

        response = client.patch(f"{PIPELINE}/leads/{lead_id}/status", json={"status": "qualified", "note": "Budget ok"})
        assert response.status_code == 200
        assert response.json()["status"] == "qualified"

        journey = client.get(f"{PIPELINE}/leads/{lead_id}/journey").json()
        assert [s["stage"] for s in journey["stages"]] == ["keyword", "conversion"]
        assert journey["completion"] == 67

        follow_ups = client.get(f"{PIPELINE}/leads/{lead_id}/follow-ups").json()
        assert sorted(f["task"]["category"] for f in follow_ups) == ["nurturing", "sales"]

        qualified = client.get(f"{PIPELINE}/leads", params={"status": "qualified"}).json()
        assert [l["id"] for l in qualified] == [lead_id]

    def test_manual_follow_up_and_task_status(self, client):
        lead_id = _process(client, intent_score=20)["lead"]["id"]

        response = client.post(f"{PIPELINE}/leads/{lead_id}/follow-ups", json={"title": "Send case study"})
        assert response.status_code == 201
        task_id = response.json()["task"]["id"]
        assert response.json()["follow_up"]["trigger_type"] == "manual"

        done = client.patch(f"{PIPELINE}/tasks/{task_id}/status", json={"status": "done"})
        assert done.json()["status"] == "done"

        back = client.patch(f"{PIPELINE}/tasks/{task_id}/status", json={"status": "pending"})
        assert back.status_code == 422

        listed = client.get(f"{PIPELINE}/tasks", params={"lead_id": lead_id, "status": "done"}).json()
        assert [t["id"] for t in listed] == [task_id]

    def test_unknown_lead_is_404(self, client):
        missing = uuid4()

        assert client.get(f"{PIPELINE}/leads/{missing}").status_code == 404
        assert client.post(
            f"{PIPELINE}/leads/{missing}/score", json={"activity_type": "demo_request"}
        ).status_code == 404
        assert client.post(
            f"{PIPELINE}/leads/{missing}/follow-ups", json={"title": "Call"}
        ).status_code == 404

    def test_crm_sync_accepted(self, client):
        lead_id = _process(client)["lead"]["id"]

        response = client.post(f"{PIPELINE}/leads/{lead_id}/crm-sync", json={"system": "hubspot"})

        assert response.status_code == 202
        assert response.json()["sync_status"] == "pending"
        assert len(client.get(f"{PIPELINE}/leads/{lead_id}/crm-sync").json()) == 1

        bad = client.post(f"{PIPELINE}/leads/{lead_id}/crm-sync", json={"system": "salesforce"})
        assert bad.status_code == 422

    def test_search_and_analytics(self, client):
        results = client.post(f"{PIPELINE}/leads/search", json={"min_intent_score": 90}).json()
        assert [r["name"] for r in results] == ["Sarah Chen"]

        created = client.post(f"{PIPELINE}/aggregate").json()
        assert len(created) == 3

        analytics = client.get(f"{PIPELINE}/analytics").json()
        assert analytics["total_leads"] == 3
        assert analytics["by_status"] == {"new": 3}


# ============================================================================
# TEST: Competitors
# ============================================================================

@pytest.mark.integration
class TestCompetitorRoutes:

    def _report(self, client, impact_score, change_type="pricing_update"):
        response = client.post(f"{COMPETITORS}/changes", json={
            "change": {"competitor_id": "comp_1", "change_type": change_type, "impact_score": impact_score},
            "config": CONFIG,
        })
        assert response.status_code == 200
        return response.json()

    def test_critical_change(self, client):
        data = self._report(client, 9.0)

        assert data["alert"]["severity"] == "critical"
        assert data["alert"]["delivery_status"] == {"email": "delivered"}
        assert data["task"]["priority"] == 5
        assert data["playbook"]["status"] == "draft"

    def test_low_impact_change(self, client):
        data = self._report(client, 3.0, change_type="ad_change")

        assert data["alert"]["severity"] == "info"
        assert data["task"] is None
        assert data["playbook"] is None

    def test_alert_filters_and_read(self, client):
        critical = self._report(client, 9.0)["alert"]
        self._report(client, 3.0, change_type="ad_change")

        listed = client.get(f"{COMPETITORS}/alerts", params={"severity": "critical"}).json()
        assert [a["id"] for a in listed] == [critical["id"]]

        read = client.patch(f"{COMPETITORS}/alerts/{critical['id']}/read").json()
        assert read["read"] is True

        unread = client.get(f"{COMPETITORS}/alerts", params={"unread_only": True}).json()
        assert [a["type"] for a in unread] == ["ad_change"]

    def test_playbook_lifecycle(self, client):
        playbook = self._report(client, 8.0)["playbook"]
        base = f"{COMPETITORS}/playbooks/{playbook['id']}"

        assert client.patch(f"{base}/status", json={"status": "completed"}).status_code == 422
        assert client.patch(f"{base}/status", json={"status": "approved"}).json()["status"] == "approved"

        assert playbook["progress"] == 0.0

        action_id = playbook["actions"][0]["id"]
        assigned = client.patch(f"{base}/actions/{action_id}/assign", json={"assigned_to": "ana@team"}).json()
        assert assigned["actions"][0]["assigned_to"] == "ana@team"
        assert assigned["progress"] == pytest.approx(1 / len(assigned["actions"]))

        assert [p["id"] for p in client.get(f"{COMPETITORS}/playbooks", params={"active_only": True}).json()] == [
            playbook["id"]
        ]
        assert client.get(f"{COMPETITORS}/playbooks/{uuid4()}").status_code == 404

    def test_monitoring_controls(self, client):
        started = client.post(f"{COMPETITORS}/monitoring/start", json=[CONFIG]).json()
        assert started["running"] is True
        assert started["competitors"] == ["Acme Analytics"]

        assert client.get(f"{COMPETITORS}/monitoring/status").json()["running"] is True
        assert client.get("/health").json()["monitoring"] is True

        stopped = client.post(f"{COMPETITORS}/monitoring/stop").json()
        assert stopped == {"running": False, "interval_seconds": started["interval_seconds"], "competitors": []}

        assert client.post(f"{COMPETITORS}/monitoring/tick").json() == []
