"""API tests for the v1 routers, with a fake store behind the board."""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from scoutcrm.api.deps import (
    get_board,
    get_bulk_limiter,
    get_local_store,
    get_session_key,
    get_usage_tracker,
)
from scoutcrm.chains.evaluate_prospect import FALLBACK_EVALUATION, EvaluationResult
from scoutcrm.chains.extract_prospects import ExtractedCandidate
from scoutcrm.core.llm_usage import AIUsageTracker
from scoutcrm.core.rate_limiter import BulkImportLimiter
from scoutcrm.core.status_policy import PROMOTION_SENTINEL
from scoutcrm.db.prospect_rows import PROSPECTS_TABLE
from scoutcrm.db.session import get_access_token
from scoutcrm.db.store import StoreAuthError, StoreRejectedError, StoreUnavailableError
from scoutcrm.main import app
from tests.fixtures_prospects import SAMPLE_EVALUATION

TODAY = date(2026, 5, 1)
SESSION_KEY = "scout_auth_session"


@pytest.fixture
def limiter(local_store) -> BulkImportLimiter:
    return BulkImportLimiter(local_store, daily_limit=3, today=lambda: TODAY)


@pytest.fixture
def tracker(local_store) -> AIUsageTracker:
    return AIUsageTracker(local_store, today=lambda: TODAY)


@pytest.fixture
def client(board, limiter, tracker, local_store):
    """Test client wired to the fixture board; the lifespan is not run."""
    app.dependency_overrides[get_board] = lambda: board
    app.dependency_overrides[get_bulk_limiter] = lambda: limiter
    app.dependency_overrides[get_usage_tracker] = lambda: tracker
    app.dependency_overrides[get_local_store] = lambda: local_store
    app.dependency_overrides[get_session_key] = lambda: SESSION_KEY
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, name="Jane Doe", **fields) -> dict:
    response = client.post("/v1/prospects", json={"name": name, "position": "CM", **fields})
    assert response.status_code == 201
    return response.json()


def _notification_kinds(client) -> list[str]:
    return [n["kind"] for n in client.get("/v1/notifications").json()]


class TestProspectEndpoints:
    def test_pipeline_hides_shadow_prospects(self, client):
        _create(client, "Jane Doe")
        _create(client, "Shadow Kid", status="Prospect")

        board = client.get("/v1/prospects").json()
        assert [p["name"] for p in board["prospects"]] == ["Jane Doe"]
        assert "Undiscovered" not in board["columns"]
        assert [p["name"] for p in board["columns"]["Lead"]] == ["Jane Doe"]
        assert board["online"] is True
        assert board["pending_sync"] == 0

        outreach = client.get("/v1/prospects/outreach").json()
        assert {p["name"] for p in outreach} == {"Jane Doe", "Shadow Kid"}

    def test_placed_status_celebrates(self, client):
        prospect = _create(client)

        response = client.patch(
            f"/v1/prospects/{prospect['id']}/status",
            json={"status": "Placed", "extra_data": "UCLA"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["changed"] is True
        assert data["celebrate"] is True
        assert data["previous_status"] == "Lead"
        assert data["prospect"]["placed_location"] == "UCLA"
        assert _notification_kinds(client) == ["placed"]

    def test_same_status_is_a_no_op(self, client):
        prospect = _create(client)
        data = client.patch(f"/v1/prospects/{prospect['id']}/status", json={"status": "Lead"}).json()
        assert data["changed"] is False
        assert data["celebrate"] is False

    def test_invalid_status_returns_400(self, client, fake_store):
        prospect = _create(client)
        response = client.patch(f"/v1/prospects/{prospect['id']}/status", json={"status": "Drafted"})

        assert response.status_code == 400
        assert fake_store.calls_for("update") == []

    def test_unknown_prospect_returns_404(self, client):
        assert client.patch("/v1/prospects/missing/status", json={"status": "Lead"}).status_code == 404
        assert client.patch("/v1/prospects/missing/notes", json={"notes": "x"}).status_code == 404
        assert client.delete("/v1/prospects/missing").status_code == 404
        response = client.post(
            "/v1/prospects/missing/outreach",
            json={"method": "Email", "template_name": "First Spark"},
        )
        assert response.status_code == 404

    def test_notes_and_outreach_log(self, client, fake_store):
        prospect = _create(client)

        notes = client.patch(f"/v1/prospects/{prospect['id']}/notes", json={"notes": "Quick feet"})
        assert notes.json()["notes"] == "Quick feet"

        log = client.post(
            f"/v1/prospects/{prospect['id']}/outreach",
            json={"method": "WhatsApp", "template_name": "First Spark", "note": "Sent video request"},
        )
        assert log.status_code == 201
        assert log.json()["method"] == "WhatsApp"

        stored = client.get("/v1/prospects").json()["prospects"][0]
        assert stored["last_contacted_at"] is not None
        assert len(stored["outreach_logs"]) == 1
        assert fake_store.rows(PROSPECTS_TABLE)[0]["notes"] == "Quick feet"

    def test_delete(self, client, fake_store):
        prospect = _create(client)

        assert client.delete(f"/v1/prospects/{prospect['id']}").json() == {"ok": True}
        assert fake_store.rows(PROSPECTS_TABLE) == []
        assert client.get("/v1/prospects").json()["prospects"] == []

    def test_failed_delete_keeps_prospect(self, client, fake_store):
        prospect = _create(client)
        fake_store.fail("delete", StoreUnavailableError("connection refused"))

        response = client.delete(f"/v1/prospects/{prospect['id']}")

        assert response.status_code == 503
        assert len(client.get("/v1/prospects").json()["prospects"]) == 1


class TestSyncEndpoints:
    def test_offline_create_then_reconnect(self, client, fake_store):
        """A creation made while the store is down is committed on reconnect."""
        fake_store.fail("insert", StoreUnavailableError("connection refused"))
        pending = _create(client, "Offline Kid")

        assert pending["pending_sync"] is True
        assert pending["id"].startswith("local-")
        assert client.get("/v1/prospects").json()["online"] is False
        assert [e["local_id"] for e in client.get("/v1/sync/pending").json()] == [pending["id"]]

        response = client.post("/v1/sync/connectivity", json={"online": True}).json()

        assert response["online"] is True
        remote_id = response["drain"]["committed"][pending["id"]]
        assert client.get("/v1/sync/pending").json() == []
        assert [p["id"] for p in client.get("/v1/prospects").json()["prospects"]] == [remote_id]
        assert "offline" in _notification_kinds(client)

    def test_going_offline_has_no_drain(self, client):
        response = client.post("/v1/sync/connectivity", json={"online": False}).json()
        assert response == {"online": False, "drain": None}

    def test_rejected_create_needs_attention(self, client, fake_store):
        fake_store.fail("insert", StoreRejectedError("invalid input syntax"), times=None)
        pending = _create(client, "Bad Row")

        entries = client.get("/v1/sync/pending").json()
        assert entries[0]["needs_attention"] is True
        assert entries[0]["attempts"] == 1
        assert "invalid input syntax" in entries[0]["last_error"]
        assert _notification_kinds(client) == ["sync_failed"]

        # A retry that fails again leaves the entry at the head of the queue
        drain = client.post("/v1/sync/drain").json()
        assert drain["committed"] == {}
        assert drain["remaining"] == 1
        assert drain["failed_local_id"] == pending["id"]

        assert client.delete(f"/v1/sync/pending/{pending['id']}").json() == {"ok": True}
        assert client.delete(f"/v1/sync/pending/{pending['id']}").status_code == 404
        assert client.get("/v1/prospects/outreach").json() == []


class TestAuthEndpoints:
    def test_sign_in_saves_token_and_retries_queue(self, client, fake_store, local_store):
        """Signing in commits creations the store refused while signed out."""
        fake_store.fail("insert", StoreAuthError("JWT expired"))
        pending = _create(client, "Locked Out")
        assert pending["pending_sync"] is True
        assert client.get("/v1/auth/session").json()["signed_in"] is False

        data = client.put(
            "/v1/auth/session", json={"access_token": "tok-123", "refresh_token": "ref-1"}
        ).json()

        assert data["signed_in"] is True
        assert pending["id"] in data["drain"]["committed"]
        assert client.get("/v1/sync/pending").json() == []
        assert get_access_token(local_store, SESSION_KEY) == "tok-123"
        assert local_store.get(SESSION_KEY)["refresh_token"] == "ref-1"
        assert client.get("/v1/auth/session").json()["signed_in"] is True

    def test_sign_in_while_offline_skips_drain(self, client, fake_store):
        client.post("/v1/sync/connectivity", json={"online": False})
        response = client.put("/v1/auth/session", json={"access_token": "tok"})
        assert response.json() == {"signed_in": True, "drain": None}
        assert fake_store.calls_for("insert") == []

    def test_sign_out(self, client, local_store):
        client.put("/v1/auth/session", json={"access_token": "tok"})

        assert client.delete("/v1/auth/session").json() == {"signed_in": False, "drain": None}
        assert local_store.get(SESSION_KEY) is None
        assert client.put("/v1/auth/session", json={"access_token": ""}).status_code == 422


class TestAssessmentEndpoints:
    def test_submission_promotes_lead(self, client):
        prospect = _create(client)

        data = client.post(
            f"/v1/assessments/{prospect['id']}/activity", json={"action": "submitted"}
        ).json()

        assert data["changed"] is True
        assert data["previous_status"] == "Lead"
        assert data["prospect"]["status"] == "Interested"
        assert data["prospect"]["interested_program"] == PROMOTION_SENTINEL
        assert data["prospect"]["activity_status"] == "submitted"
        assert _notification_kinds(client) == ["promotion"]

    def test_view_only_records_activity(self, client):
        prospect = _create(client)
        data = client.post(f"/v1/assessments/{prospect['id']}/activity", json={"action": "viewed"}).json()

        assert data["changed"] is False
        assert data["prospect"]["status"] == "Lead"
        assert data["prospect"]["last_active"] is not None

    def test_invalid_actions(self, client):
        prospect = _create(client)
        url = f"/v1/assessments/{prospect['id']}/activity"

        assert client.post(url, json={"action": "none"}).status_code == 400
        assert client.post(url, json={"action": "clicked"}).status_code == 422
        assert client.post("/v1/assessments/missing/activity", json={"action": "viewed"}).status_code == 404


class TestNotificationEndpoints:
    def test_newest_first_and_clear(self, client):
        prospect = _create(client)
        client.post(f"/v1/assessments/{prospect['id']}/activity", json={"action": "submitted"})
        client.patch(f"/v1/prospects/{prospect['id']}/status", json={"status": "Placed"})

        kinds = [n["kind"] for n in client.get("/v1/notifications", params={"clear": True}).json()]

        assert kinds == ["placed", "promotion"]
        assert client.get("/v1/notifications").json() == []


class TestAIEndpoints:
    def test_evaluate_attaches_to_prospect(self, client, tracker):
        prospect = _create(client)
        mock = AsyncMock(return_value=EvaluationResult(evaluation=SAMPLE_EVALUATION))

        with patch("scoutcrm.api.ai.evaluate_prospect_result", new=mock):
            response = client.post(
                "/v1/ai/evaluate",
                json={"input_data": "17yo CM, captain", "prospect_id": prospect["id"]},
            )

        data = response.json()
        assert data["fallback"] is False
        assert data["attached"] is True
        assert data["evaluation"]["score"] == 81
        stored = client.get("/v1/prospects").json()["prospects"][0]
        assert stored["evaluation"]["nextAction"] == "Invite to ID Day"
        assert tracker.stats().today.used == 5

    def test_fallback_is_not_attached_or_charged(self, client, tracker):
        prospect = _create(client)
        result = EvaluationResult(evaluation=FALLBACK_EVALUATION, error="timeout")

        with patch("scoutcrm.api.ai.evaluate_prospect_result", new=AsyncMock(return_value=result)):
            data = client.post(
                "/v1/ai/evaluate",
                json={"input_data": "blurry photo", "is_image": True, "prospect_id": prospect["id"]},
            ).json()

        assert data["fallback"] is True
        assert data["attached"] is False
        assert data["evaluation"]["nextAction"] == "Manual Review"
        assert client.get("/v1/prospects").json()["prospects"][0]["evaluation"] is None
        assert tracker.stats().today.used == 0

    def test_evaluate_unknown_prospect(self, client):
        mock = AsyncMock()
        with patch("scoutcrm.api.ai.evaluate_prospect_result", new=mock):
            response = client.post("/v1/ai/evaluate", json={"input_data": "x", "prospect_id": "missing"})
        assert response.status_code == 404
        mock.assert_not_called()

    def test_credit_limit_blocks_before_model_call(self, client, tracker):
        for _ in range(10):
            tracker.record("player_evaluation")
        mock = AsyncMock()

        with patch("scoutcrm.api.ai.evaluate_prospect_result", new=mock):
            response = client.post("/v1/ai/evaluate", json={"input_data": "x"})

        assert response.status_code == 429
        assert "daily" in response.json()["detail"]
        mock.assert_not_called()

    def test_bulk_extract_imports_up_to_daily_limit(self, client, tracker):
        candidates = [ExtractedCandidate(name=f"Player {i}") for i in range(4)]

        with patch("scoutcrm.api.ai.extract_prospects_from_bulk", new=AsyncMock(return_value=candidates)):
            data = client.post("/v1/ai/bulk-extract", json={"input_data": "roster"}).json()

        assert data["imported"] == 3
        assert data["remaining_today"] == 0
        assert [p["name"] for p in data["candidates"]] == ["Player 0", "Player 1", "Player 2"]
        assert client.get("/v1/prospects").json()["prospects"] == []
        outreach = client.get("/v1/prospects/outreach").json()
        assert {p["status"] for p in outreach} == {"Prospect"}
        assert tracker.stats().today.used == 2

        with patch("scoutcrm.api.ai.extract_prospects_from_bulk", new=AsyncMock()) as mock:
            assert client.post("/v1/ai/bulk-extract", json={"input_data": "more"}).status_code == 429
        mock.assert_not_called()

    def test_bulk_extract_preview_only(self, client, limiter):
        candidates = [ExtractedCandidate(name="Ana Lima", position="GK")]

        with patch("scoutcrm.api.ai.extract_prospects_from_bulk", new=AsyncMock(return_value=candidates)):
            data = client.post(
                "/v1/ai/bulk-extract",
                json={"input_data": "BASE64", "is_image": True, "import_candidates": False},
            ).json()

        assert data["imported"] == 0
        assert data["candidates"][0]["status"] == "Prospect"
        assert limiter.remaining() == 3
        assert client.get("/v1/prospects/outreach").json() == []

    def test_empty_extraction_is_free(self, client, tracker):
        with patch("scoutcrm.api.ai.extract_prospects_from_bulk", new=AsyncMock(return_value=[])):
            data = client.post("/v1/ai/bulk-extract", json={"input_data": "nothing"}).json()

        assert data == {"candidates": [], "imported": 0, "remaining_today": 3}
        assert tracker.stats().today.used == 0

    def test_parse_details(self, client, tracker):
        fields = {"firstName": "Ana", "lastName": "Lima"}
        with patch("scoutcrm.api.ai.parse_prospect_details", new=AsyncMock(return_value=fields)):
            response = client.post("/v1/ai/parse-details", json={"text": "Ana Lima, GK"})

        assert response.json() == fields
        assert tracker.stats().today.used == 1

    def test_outreach_message(self, client, tracker):
        prospect = _create(client, "Ana Lima")
        mock = AsyncMock(return_value="Hi Ana!")

        with patch("scoutcrm.api.ai.generate_outreach_message", new=mock):
            response = client.post(
                "/v1/ai/outreach-message",
                json={"prospect_id": prospect["id"], "scout_name": "Coach Ray", "template": "Request Video"},
            )

        assert response.json() == {"message": "Hi Ana!"}
        assert mock.call_args.args[0] == "Coach Ray"
        assert mock.call_args.args[2] == "Request Video"
        assert tracker.stats().today.used == 2

    def test_outreach_message_unknown_prospect(self, client):
        response = client.post("/v1/ai/outreach-message", json={"prospect_id": "missing"})
        assert response.status_code == 404

    def test_usage(self, client, tracker):
        tracker.record("outreach_message")
        data = client.get("/v1/ai/usage").json()
        assert data["today"] == {"used": 2, "limit": 50, "remaining": 48, "percentage": 4}
        assert data["month"]["limit"] == 500
