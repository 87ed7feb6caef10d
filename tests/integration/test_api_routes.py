"""Integration tests for the guarded HTTP routes."""

from datetime import datetime, timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from adoption.app.api.routes.promotions import UNSCHEDULED_NOTES
from adoption.app.audit.sinks import InMemoryAuditSink
from adoption.app.config import Settings
from adoption.app.db.inmemory import InMemoryAdoptionStore
from adoption.app.db.repositories import StoreUnavailableError
from adoption.app.main import create_app
from adoption.app.models.common import PromotionStatus
from adoption.app.models.decision import Decision
from adoption.app.services import build_services

ADMIN = {"Authorization": "Bearer admin-1:admin"}
USER = {"Authorization": "Bearer user-1:user"}
MEMBER = {"Authorization": "Bearer member-1:org_member:org-1"}
OTHER_MEMBER = {"Authorization": "Bearer member-2:org_member:org-2"}


def make_client(store: InMemoryAdoptionStore, audit: InMemoryAuditSink, clock: Any, **settings: Any) -> TestClient:
    services = build_services(
        Settings(environment="test", scheduler_enabled=False, **settings),
        store=store,
        audit=audit,
        clock=clock,
    )
    return TestClient(create_app(services))


@pytest.fixture
def client(store: InMemoryAdoptionStore, audit: InMemoryAuditSink, clock: Any) -> TestClient:
    return make_client(store, audit, clock)


class TestUserRoute:
    def test_self_allowed(self, client: TestClient) -> None:
        response = client.get("/users/user-1", headers=USER)

        assert response.status_code == 200
        assert response.json()["role"] == "user"

    def test_admin_allowed(self, client: TestClient) -> None:
        assert client.get("/users/user-1", headers=ADMIN).status_code == 200

    def test_other_user_forbidden(self, client: TestClient) -> None:
        response = client.get("/users/user-1", headers=MEMBER)

        assert response.status_code == 403
        assert response.json()["detail"]["denial"] == "forbidden"

    def test_anonymous_unauthorized(self, client: TestClient) -> None:
        response = client.get("/users/user-1")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_malformed_token_unauthorized(self, client: TestClient) -> None:
        assert client.get("/users/user-1", headers={"Authorization": "Bearer nonsense"}).status_code == 401

    def test_denial_without_reason_code_is_forbidden(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def deny(*args: Any) -> Decision:
            return Decision(check="admin_or_self", allowed=False, reason="denied")

        monkeypatch.setattr(client.app.state.services.decisions, "check", deny)  # type: ignore[attr-defined]

        response = client.get("/users/user-1", headers=USER)

        assert response.status_code == 403
        assert response.json()["detail"]["denial"] == "forbidden"

    def test_stale_role_forbidden(self, client: TestClient) -> None:
        """Test a user presenting an admin role is refused."""
        response = client.get("/users/member-1", headers={"Authorization": "Bearer user-1:admin"})

        assert response.status_code == 403


class TestOrgRoute:
    def test_member_of_org_allowed(self, client: TestClient) -> None:
        response = client.get("/orgs/org-1", headers=MEMBER)

        assert response.status_code == 200
        assert response.json()["name"] == "Happy Tails"

    def test_member_of_other_org_forbidden(self, client: TestClient) -> None:
        assert client.get("/orgs/org-1", headers=OTHER_MEMBER).status_code == 403

    def test_admin_gets_404_for_missing_org(self, client: TestClient) -> None:
        assert client.get("/orgs/nope", headers=ADMIN).status_code == 404


class TestOwnershipRoutes:
    def test_pet_owner_org(self, client: TestClient) -> None:
        response = client.get("/pets/pet-1", headers=MEMBER)

        assert response.status_code == 200
        assert response.json() == {"pet_id": "pet-1", "org_id": "org-1"}

    def test_pet_other_org(self, client: TestClient) -> None:
        assert client.get("/pets/pet-1", headers=OTHER_MEMBER).status_code == 403

    def test_missing_pet(self, client: TestClient) -> None:
        response = client.get("/pets/nope", headers=ADMIN)

        assert response.status_code == 404
        assert response.json()["detail"]["denial"] == "not_found"

    def test_application_applicant(self, client: TestClient) -> None:
        response = client.get("/applications/app-1", headers=USER)

        assert response.status_code == 200
        assert response.json()["user_id"] == "user-1"

    def test_store_unavailable(
        self, store: InMemoryAdoptionStore, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def unavailable(*args: Any) -> None:
            raise StoreUnavailableError("timeout")

        monkeypatch.setattr(store, "get_owner", unavailable)

        response = client.get("/pets/pet-1", headers=MEMBER)

        assert response.status_code == 503
        assert response.json()["detail"]["denial"] == "store_unavailable"


class TestPromotionFlow:
    def test_request_then_force_poll_promotes(self, client: TestClient, audit: InMemoryAuditSink) -> None:
        response = client.post(
            "/promotion-requests",
            json={"org_name": "Sunny Paws", "org_location": "Hull"},
            headers=USER,
        )
        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"

        pending = client.get("/admin/scheduler/tasks", headers=ADMIN).json()
        assert [task["task_id"] for task in pending] == [body["task_id"]]

        # Not due for another ten minutes
        assert client.post("/admin/scheduler/poll", headers=ADMIN).json() == {"executed": 0}
        assert client.post("/admin/scheduler/force-poll", headers=ADMIN).json() == {"executed": 1}

        user = client.get("/users/user-1", headers=ADMIN).json()
        assert user["role"] == "org_member"
        assert client.get("/admin/scheduler/tasks", headers=ADMIN).json() == []
        assert len(audit.by_action("temporary_org_created")) == 1
        [submitted] = audit.by_action("promotion_request_submitted")
        assert submitted.subject_id == "user-1"
        assert submitted.target_id == body["request_id"]
        assert submitted.details["org_name"] == "Sunny Paws"

        # The old role claim is now stale
        assert client.get("/orgs/" + user["org_id"], headers=USER).status_code == 403
        member = {"Authorization": f"Bearer user-1:org_member:{user['org_id']}"}
        org = client.get("/orgs/" + user["org_id"], headers=member).json()
        assert org["name"] == "Temporary Rescue - Sunny Paws"
        assert org["provisional"] is True

    def test_org_member_cannot_request(self, client: TestClient) -> None:
        response = client.post(
            "/promotion-requests",
            json={"org_name": "Sunny Paws", "org_location": "Hull"},
            headers=MEMBER,
        )

        assert response.status_code == 409

    def test_anonymous_cannot_request(self, client: TestClient) -> None:
        response = client.post("/promotion-requests", json={"org_name": "Sunny Paws", "org_location": "Hull"})

        assert response.status_code == 401

    def test_validation_error(self, client: TestClient) -> None:
        response = client.post("/promotion-requests", json={"org_name": ""}, headers=USER)

        assert response.status_code == 422

    def test_schedule_failure_rejects_request(
        self,
        client: TestClient,
        store: InMemoryAdoptionStore,
        audit: InMemoryAuditSink,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def unavailable(*args: Any) -> str:
            raise StoreUnavailableError("timeout")

        monkeypatch.setattr(client.app.state.services.scheduler, "schedule", unavailable)  # type: ignore[attr-defined]

        response = client.post(
            "/promotion-requests",
            json={"org_name": "Sunny Paws", "org_location": "Hull"},
            headers=USER,
        )

        assert response.status_code == 503
        [submitted] = audit.by_action("promotion_request_submitted")
        request = store.get_request(submitted.target_id)  # type: ignore[arg-type]
        assert request is not None
        assert request.status == PromotionStatus.rejected
        assert request.admin_notes == UNSCHEDULED_NOTES


class TestAdminRoutes:
    def test_scheduler_requires_admin(self, client: TestClient) -> None:
        assert client.post("/admin/scheduler/poll", headers=USER).status_code == 403
        assert client.post("/admin/scheduler/force-poll", headers=MEMBER).status_code == 403
        assert client.get("/admin/scheduler/tasks").status_code == 401

    def test_access_control_snapshot(self, client: TestClient) -> None:
        response = client.get("/admin/access-control", headers=ADMIN)

        assert response.status_code == 200
        data = response.json()
        assert data["environment"] == "test"
        assert data["policies"]["bypass_all"] is False
        assert "require_admin" in data["enabled"]

    def test_access_control_forbidden_for_users(self, client: TestClient) -> None:
        assert client.get("/admin/access-control", headers=USER).status_code == 403


class TestPolicySettings:
    def test_bypass_lets_anonymous_through(
        self, store: InMemoryAdoptionStore, audit: InMemoryAuditSink, clock: Any
    ) -> None:
        client = make_client(store, audit, clock, authz_bypass_all=True)

        assert client.get("/users/user-1").status_code == 200

    def test_disabled_policy_lets_anonymous_through(
        self, store: InMemoryAdoptionStore, audit: InMemoryAuditSink, clock: Any
    ) -> None:
        client = make_client(store, audit, clock, authz_enforce_resource_ownership=False)

        assert client.get("/pets/pet-1").status_code == 200
        assert client.get("/users/user-1").status_code == 401

    def test_audit_logging_records_decisions(
        self, store: InMemoryAdoptionStore, audit: InMemoryAuditSink, clock: Any
    ) -> None:
        client = make_client(store, audit, clock, authz_enable_audit_logging=True)

        client.get("/users/user-1", headers=MEMBER)

        [entry] = audit.by_action("access_check")
        assert entry.outcome == "denied"
        assert entry.policy == "admin_or_self"
        assert entry.resource_path == "/users/user-1"
        assert entry.subject_id == "member-1"


def test_promotion_due_at_follows_service_clock(
    store: InMemoryAdoptionStore, audit: InMemoryAuditSink, clock: Any
) -> None:
    client = make_client(store, audit, clock, promotion_delay_minutes=15)

    response = client.post(
        "/promotion-requests",
        json={"org_name": "Sunny Paws", "org_location": "Hull"},
        headers=USER,
    )

    due_at = datetime.fromisoformat(response.json()["due_at"])
    assert due_at == clock.now + timedelta(minutes=15)
    [task] = client.get("/admin/scheduler/tasks", headers=ADMIN).json()
    assert datetime.fromisoformat(task["due_at"]) == due_at
