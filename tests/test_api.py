"""Integration tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from kpigate.api.deps import get_workflow
from kpigate.database import get_db
from kpigate.main import app


@pytest.fixture()
def client(session_maker, workflow):
    """TestClient wired to the per-test SQLite database."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_workflow] = lambda: workflow
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()


def _evaluation(**overrides):
    body = {
        "subject_id": "op-1",
        "evaluator_id": "sup-1",
        "project_id": "site-a",
        "date": "2024-05-01",
        "attitude": 8,
        "performance": 7,
        "quality": 9,
        "appearance": 8,
    }
    body.update(overrides)
    return body


def _unlock(**overrides):
    body = {
        "subject_id": "op-1",
        "subject_name": "Operator One",
        "requester_id": "sup-1",
        "requester_name": "Supervisor",
        "project_id": "site-a",
        "reason": "typo",
        "date": "2024-05-01",
    }
    body.update(overrides)
    return body


class TestEvaluationEndpoints:
    def test_submit_and_conflict(self, client):
        resp = client.post("/v1/evaluations", json=_evaluation())
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "pending"
        assert data["average"] == 8.0

        resp = client.post("/v1/evaluations", json=_evaluation(attitude=1))
        assert resp.status_code == 409

    def test_scores_are_validated(self, client):
        resp = client.post("/v1/evaluations", json=_evaluation(quality=11))
        assert resp.status_code == 422

    def test_review_and_list(self, client):
        record_id = client.post("/v1/evaluations", json=_evaluation()).json()["record_id"]
        client.post("/v1/evaluations", json=_evaluation(subject_id="op-2"))

        resp = client.post(
            "/v1/evaluations/status", json={"record_ids": [record_id], "status": "approved"}
        )
        assert resp.json() == {"changed": 1}

        pending = client.get("/v1/evaluations", params={"project": "site-a", "status": "pending"})
        assert [r["subject_id"] for r in pending.json()] == ["op-2"]

    def test_bulk_approve(self, client):
        ids = [
            client.post("/v1/evaluations", json=_evaluation(subject_id=f"op-{n}")).json()["record_id"]
            for n in range(3)
        ]
        resp = client.post("/v1/evaluations/bulk-approve", json={"record_ids": ids + ["gone"]})
        assert resp.json() == {"requested": 4, "changed": 3}


class TestUnlockRequestEndpoints:
    def test_approve_cascades_and_unlocks(self, client):
        record_id = client.post("/v1/evaluations", json=_evaluation()).json()["record_id"]
        u1 = client.post("/v1/unlock-requests", json=_unlock(target_record_id=record_id)).json()
        u2 = client.post("/v1/unlock-requests", json=_unlock()).json()
        assert u1["status"] == u2["status"] == "pending"

        resp = client.post(f"/v1/unlock-requests/{u1['request_id']}/approve")
        assert resp.status_code == 200
        assert resp.json()["deleted"] == 1
        assert resp.json()["cascaded"] == 1

        statuses = {
            r["request_id"]: r["status"]
            for r in client.get("/v1/unlock-requests", params={"project": "site-a"}).json()
        }
        assert statuses == {u1["request_id"]: "approved", u2["request_id"]: "approved"}

        again = client.post(f"/v1/unlock-requests/{u1['request_id']}/approve")
        assert again.json()["already_resolved"] is True

        assert client.post("/v1/evaluations", json=_evaluation()).status_code == 201

    def test_reject_leaves_siblings_pending(self, client):
        client.post("/v1/evaluations", json=_evaluation())
        u1 = client.post("/v1/unlock-requests", json=_unlock()).json()
        u2 = client.post("/v1/unlock-requests", json=_unlock()).json()

        resp = client.post(f"/v1/unlock-requests/{u1['request_id']}/reject")
        assert resp.json()["changed"] == 1

        pending = client.get("/v1/unlock-requests", params={"status": "pending"}).json()
        assert [r["request_id"] for r in pending] == [u2["request_id"]]
        assert len(client.get("/v1/evaluations").json()) == 1

    def test_blank_reason_is_refused(self, client):
        resp = client.post("/v1/unlock-requests", json=_unlock(reason=" "))
        assert resp.status_code == 422

    def test_requester_filter(self, client):
        client.post("/v1/unlock-requests", json=_unlock())
        client.post("/v1/unlock-requests", json=_unlock(requester_id="sup-2", subject_id="op-2"))
        mine = client.get("/v1/unlock-requests", params={"requester_id": "sup-2"}).json()
        assert [r["subject_id"] for r in mine] == ["op-2"]


class TestHealthEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_metrics_counts_pending_work(self, client):
        client.post("/v1/evaluations", json=_evaluation())
        client.post("/v1/unlock-requests", json=_unlock())
        data = client.get("/metrics", params={"project": "site-a"}).json()
        assert data["pending_unlock_requests"] == 1
        assert data["pending_evaluations"] == 1
