"""
Integration tests for the Sessions and Features API

Tests authentication, listing, join/leave/cancel endpoints, session creation
and the error response contract through the ASGI app.
"""

import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport

from conftest import caller_headers
from scoresmart.services.enrollment_workflow import get_enrollment_workflow
from scoresmart.services.feature_gate import get_feature_store

STUDENT = caller_headers("student-1", "STUDENT")
TUTOR = caller_headers("tutor-1", "TUTOR")
ADMIN = caller_headers("admin-1", "ADMIN")


class TestHealthAndAuth:
    """Test health endpoint and bearer/identity checks"""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/sessions")
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_001"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get("/api/v1/sessions", headers=caller_headers("student-1", "STUDENT", token="nope"))
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_002"

    @pytest.mark.asyncio
    async def test_missing_identity_headers(self, client):
        response = await client.get("/api/v1/sessions", headers={"Authorization": "Bearer test-token"})
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_003"

    @pytest.mark.asyncio
    async def test_unknown_role(self, client):
        response = await client.get("/api/v1/sessions", headers=caller_headers("x", "PARENT"))
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "AUTH_004"


class TestListSessions:
    """Test GET /api/v1/sessions"""

    @pytest.mark.asyncio
    async def test_student_sees_joinable_sessions_of_enabled_types(self, client):
        response = await client.get("/api/v1/sessions", headers=STUDENT)

        assert response.status_code == 200
        body = response.json()
        assert [s["id"] for s in body["data"]] == ["quad-open"]
        assert body["metadata"]["count"] == 1
        session = body["data"][0]
        assert session["spots_remaining"] == 2
        assert session["fill_percentage"] == 0.0
        assert session["status"] == "SCHEDULED"
        assert session["time_until_start"]["bucket"] == "days"

    @pytest.mark.asyncio
    async def test_disabled_type_returns_feature_disabled(self, client):
        response = await client.get("/api/v1/sessions", params={"session_type": "MASTERCLASS"}, headers=STUDENT)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FeatureDisabled"

    @pytest.mark.asyncio
    async def test_admin_listing_mode(self, client):
        denied = await client.get("/api/v1/sessions", params={"mode": "all"}, headers=STUDENT)
        allowed = await client.get("/api/v1/sessions", params={"mode": "all"}, headers=ADMIN)

        assert denied.status_code == 403
        assert denied.json()["error"]["code"] == "NotPermitted"
        assert [s["id"] for s in allowed.json()["data"]] == ["quad-open", "quad-full", "master-1"]

    @pytest.mark.asyncio
    async def test_tutor_own_sessions_listing(self, client):
        own = await client.get("/api/v1/sessions", params={"mode": "mine"}, headers=TUTOR)
        other = await client.get(
            "/api/v1/sessions", params={"mode": "mine"}, headers=caller_headers("tutor-2", "TUTOR")
        )
        student = await client.get("/api/v1/sessions", params={"mode": "mine"}, headers=STUDENT)

        assert own.status_code == 200
        assert [s["id"] for s in own.json()["data"]] == ["quad-open", "quad-full", "master-1"]
        assert own.json()["metadata"]["mode"] == "mine"
        assert other.json()["data"] == []
        assert student.status_code == 403
        assert student.json()["error"]["code"] == "NotPermitted"

    @pytest.mark.asyncio
    async def test_course_filter(self, client):
        response = await client.get("/api/v1/sessions", params={"course_type": "IELTS"}, headers=ADMIN)
        assert [s["id"] for s in response.json()["data"]] == ["master-1"]

    @pytest.mark.asyncio
    async def test_invalid_time_window_is_validation_error(self, client):
        response = await client.get("/api/v1/sessions", params={"time_window": "next_year"}, headers=STUDENT)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_timezone(self, client):
        response = await client.get("/api/v1/sessions", params={"tz": "Mars/Olympus"}, headers=STUDENT)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_get_single_session(self, client):
        response = await client.get("/api/v1/sessions/quad-full", headers=STUDENT)
        assert response.status_code == 200
        assert response.json()["data"]["spots_remaining"] == 0

    @pytest.mark.asyncio
    async def test_get_unknown_session(self, client):
        response = await client.get("/api/v1/sessions/missing", headers=STUDENT)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SessionNotFound"


class TestJoinLeave:
    """Test seat reservation endpoints"""

    @pytest.mark.asyncio
    async def test_join_and_leave(self, client, api_catalog):
        joined = await client.post("/api/v1/sessions/quad-open/join", headers=STUDENT)
        assert joined.status_code == 200
        data = joined.json()["data"]
        assert data["status"] == "enrolled"
        assert data["confirmation_ref"].startswith("enr_")
        assert (await api_catalog.get_session("quad-open")).current_participants == 1

        left = await client.post("/api/v1/sessions/quad-open/leave", headers=STUDENT)
        assert left.status_code == 200
        assert (await api_catalog.get_session("quad-open")).current_participants == 0

    @pytest.mark.asyncio
    async def test_join_twice(self, client):
        await client.post("/api/v1/sessions/quad-open/join", headers=STUDENT)
        again = await client.post("/api/v1/sessions/quad-open/join", headers=STUDENT)

        assert again.status_code == 409
        assert again.json()["error"]["code"] == "AlreadyEnrolled"

    @pytest.mark.asyncio
    async def test_join_full_session(self, client):
        response = await client.post("/api/v1/sessions/quad-full/join", headers=STUDENT)
        assert response.status_code == 409
        assert response.json()["error"] == {
            "code": "SessionFull",
            "message": "No seats remaining in this session",
            "details": {"session_id": "quad-full", "max_participants": 2},
        }

    @pytest.mark.asyncio
    async def test_join_without_feature(self, client):
        response = await client.post("/api/v1/sessions/master-1/join", headers=STUDENT)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FeatureDisabled"

    @pytest.mark.asyncio
    async def test_leave_without_enrollment(self, client):
        response = await client.post("/api/v1/sessions/quad-open/leave", headers=STUDENT)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NotEnrolled"


class TestCreateAndCancel:
    """Test tutor/admin session management endpoints"""

    def _payload(self, **overrides):
        start = datetime.now(timezone.utc) + timedelta(days=3)
        payload = {
            "title": "IELTS Listening Lab",
            "session_type": "SMART_QUAD",
            "course_type": "IELTS",
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(minutes=90)).isoformat(),
        }
        payload.update(overrides)
        return payload

    @pytest.mark.asyncio
    async def test_tutor_creates_session(self, client, api_catalog):
        response = await client.post("/api/v1/sessions", json=self._payload(), headers=TUTOR)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["max_participants"] == 4
        assert data["current_participants"] == 0
        assert data["tutor_id"] == "tutor-1"
        assert await api_catalog.get_session(data["id"]) is not None

    @pytest.mark.asyncio
    async def test_seat_count_cannot_be_supplied(self, client):
        response = await client.post(
            "/api/v1/sessions", json=self._payload(current_participants=3), headers=TUTOR
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_session(self, client):
        response = await client.post(
            "/api/v1/sessions", json=self._payload(max_participants=9), headers=TUTOR
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "InvalidSession"

    @pytest.mark.asyncio
    async def test_student_cannot_create(self, client):
        response = await client.post("/api/v1/sessions", json=self._payload(), headers=STUDENT)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cancel_voids_enrollments(self, client, api_catalog):
        await client.post("/api/v1/sessions/quad-open/join", headers=STUDENT)

        response = await client.post("/api/v1/sessions/quad-open/cancel", headers=ADMIN)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "cancelled"
        assert [e["participant_id"] for e in data["voided_enrollments"]] == ["student-1"]
        record = await api_catalog.get_session("quad-open")
        assert record.status.value == "CANCELLED"
        assert record.current_participants == 0

        again = await client.post("/api/v1/sessions/quad-open/cancel", headers=ADMIN)
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "InvalidTransition"

    @pytest.mark.asyncio
    async def test_student_cannot_cancel(self, client):
        response = await client.post("/api/v1/sessions/quad-open/cancel", headers=STUDENT)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NotPermitted"


class TestFeatures:
    """Test feature flag endpoints"""

    @pytest.mark.asyncio
    async def test_student_reads_own_features(self, client):
        response = await client.get("/api/v1/features/student-1", headers=STUDENT)
        assert response.status_code == 200
        assert response.json()["data"]["features"] == {
            "masterclass": False,
            "one_to_one": False,
            "smart_quad": True,
        }

    @pytest.mark.asyncio
    async def test_student_cannot_read_others(self, client):
        response = await client.get("/api/v1/features/student-2", headers=STUDENT)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_enables_masterclass(self, client):
        toggled = await client.put(
            "/api/v1/features/student-1/masterclass", json={"enabled": True}, headers=ADMIN
        )
        assert toggled.status_code == 200

        listing = await client.get("/api/v1/sessions", params={"session_type": "MASTERCLASS"}, headers=STUDENT)
        assert listing.status_code == 200
        assert [s["id"] for s in listing.json()["data"]] == ["master-1"]

    @pytest.mark.asyncio
    async def test_only_admin_toggles(self, client):
        response = await client.put(
            "/api/v1/features/student-1/masterclass", json={"enabled": True}, headers=STUDENT
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_feature(self, client):
        response = await client.put(
            "/api/v1/features/student-1/tutoring_plus", json={"enabled": True}, headers=ADMIN
        )
        assert response.status_code == 404


class TestServiceErrors:
    """Unexpected failures keep the error envelope"""

    @pytest.mark.asyncio
    async def test_unhandled_error_renders_internal_error(self, feature_store, caplog):
        from main import app

        class BrokenWorkflow:
            async def browse(self, caller, query, now=None):
                raise RuntimeError("catalog connection reset")

        app.dependency_overrides[get_enrollment_workflow] = lambda: BrokenWorkflow()
        app.dependency_overrides[get_feature_store] = lambda: feature_store
        try:
            transport = ASGITransport(app=app, raise_app_exceptions=False)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                with caplog.at_level("ERROR"):
                    response = await ac.get("/api/v1/sessions", headers=STUDENT)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        assert "catalog connection reset" in caplog.text

    @pytest.mark.asyncio
    async def test_health_names_the_service(self, client):
        body = (await client.get("/health")).json()
        assert body["service"] == "scoresmart-sessions"
        assert (await client.get("/")).status_code == 404
