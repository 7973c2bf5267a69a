"""
Integration tests for the HTTP surface using FastAPI's TestClient.
"""
import logging

import pytest
from fastapi.testclient import TestClient

from offline_queue.core.config import Settings
from offline_queue.main import create_app
from offline_queue.queue.dispatcher import DispatchResult


@pytest.fixture
def app(mock_dispatcher, clock):
    return create_app(Settings(), dispatcher=mock_dispatcher, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def signup(client, email="a@example.com", owner="s1"):
    return client.post("/queue", json={
        "actionKind": "waitlist-signup",
        "targetPath": "/api/waitlist",
        "method": "POST",
        "body": {"email": email},
        "ownerId": owner,
    })


class TestEnqueueEndpoint:
    """Test cases for POST /queue."""

    def test_enqueue_accepted(self, client):
        response = signup(client)

        assert response.status_code == 202
        data = response.json()
        assert data["queueId"].startswith("queue_")
        assert data["actionKind"] == "waitlist-signup"
        assert data["status"] == "pending"
        assert data["submittedAt"].startswith("2026-01-01T12:00:00")

    def test_duplicate_returns_same_queue_id(self, client):
        first = signup(client).json()
        second = signup(client, email="A@EXAMPLE.com").json()

        assert first["queueId"] == second["queueId"]

    def test_missing_field_is_400(self, client):
        response = client.post("/queue", json={
            "actionKind": "signup",
            "method": "POST",
            "body": {"email": "a@example.com"},
        })

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid action"
        assert "targetPath" in data["detail"]

    def test_unsupported_method_is_400(self, client):
        response = client.post("/queue", json={
            "actionKind": "signup",
            "targetPath": "/api/waitlist",
            "method": "GET",
            "body": {},
        })
        assert response.status_code == 400

    def test_queue_route_as_target_is_400(self, client):
        response = client.post("/queue", json={
            "actionKind": "replay",
            "targetPath": "/queue/process",
            "method": "POST",
            "body": {"all": True},
        })

        assert response.status_code == 400
        assert "served by the queue itself" in response.json()["detail"]
        assert client.get("/queue/status").json()["stats"]["total"] == 0

    def test_wrong_shape_is_422(self, client):
        response = client.post("/queue", json={
            "actionKind": "signup",
            "targetPath": "/api/waitlist",
            "method": "POST",
            "body": {},
            "headers": "not-a-mapping",
        })

        assert response.status_code == 422
        assert response.json()["error"] == "Validation failed"


class TestProcessEndpoint:
    """Test cases for POST /queue/process."""

    def test_process_all(self, client, mock_dispatcher):
        queue_id = signup(client).json()["queueId"]

        response = client.post("/queue/process", json={"all": True})

        assert response.status_code == 200
        assert response.json() == {
            "processed": 1, "succeeded": 1, "failed": 0, "retrying": 0, "errors": []
        }
        assert client.get(f"/queue/{queue_id}").json()["status"] == "completed"
        mock_dispatcher.dispatch.assert_called_once()

    def test_process_failure_reports_retry(self, client, mock_dispatcher):
        mock_dispatcher.dispatch.return_value = DispatchResult(status_code=500, body="db down")
        queue_id = signup(client).json()["queueId"]

        data = client.post("/queue/process", json={"ids": [queue_id]}).json()

        assert data["failed"] == 1
        assert data["errors"] == [{
            "queueId": queue_id,
            "error": "Handler returned 500: db down",
            "willRetry": True,
        }]
        action = client.get(f"/queue/{queue_id}").json()
        assert action["status"] == "pending"
        assert action["attempts"] == 1
        assert action["lastError"] == "Handler returned 500: db down"

    def test_process_by_owner(self, client):
        signup(client, email="a@example.com", owner="s1")
        signup(client, email="b@example.com", owner="s2")

        data = client.post("/queue/process", json={"ownerId": "s2"}).json()

        assert data["processed"] == 1

    def test_process_empty(self, client):
        data = client.post("/queue/process", json={"all": True}).json()
        assert (data["processed"], data["succeeded"], data["failed"]) == (0, 0, 0)


class TestStatusEndpoints:
    """Test cases for status, lookup and purge endpoints."""

    def test_status_global(self, client):
        signup(client, email="a@example.com")
        signup(client, email="b@example.com")

        data = client.get("/queue/status").json()

        assert data["stats"] == {
            "total": 2, "pending": 2, "processing": 0,
            "completed": 0, "failed": 0, "capacity": 1000,
        }
        assert len(data["actions"]) == 2
        assert "dedupKey" not in data["actions"][0]
        assert "dedup_key" not in data["actions"][0]

    def test_status_by_owner(self, client):
        signup(client, email="a@example.com", owner="s1")
        signup(client, email="b@example.com", owner="s2")

        data = client.get("/queue/status", params={"ownerId": "s1"}).json()

        assert [a["ownerId"] for a in data["actions"]] == ["s1"]
        assert data["actions"][0]["payload"] == {"email": "a@example.com"}

    def test_get_unknown_is_404(self, client):
        assert client.get("/queue/queue_missing").status_code == 404

    def test_purge(self, client):
        queue_id = signup(client).json()["queueId"]

        assert client.delete(f"/queue/{queue_id}").status_code == 204
        assert client.get(f"/queue/{queue_id}").status_code == 404
        assert client.delete(f"/queue/{queue_id}").status_code == 404


    def test_header_values_are_not_returned(self, client):
        queue_id = client.post("/queue", json={
            "actionKind": "forum-post",
            "targetPath": "/api/forum/post",
            "method": "POST",
            "body": {"userId": "u1", "forumId": "f1", "text": "hi"},
            "headers": {"Authorization": "Bearer SECRET"},
            "ownerId": "s1",
        }).json()["queueId"]

        responses = [
            client.get("/queue/status"),
            client.get("/queue/status", params={"ownerId": "s1"}),
            client.get(f"/queue/{queue_id}"),
        ]

        for response in responses:
            assert response.status_code == 200
            assert "SECRET" not in response.text
            assert "Bearer" not in response.text

        for action in (responses[0].json()["actions"][0], responses[1].json()["actions"][0], responses[2].json()):
            assert "headers" not in action
            assert action["headerNames"] == ["Authorization"]

    def test_header_values_still_forwarded_on_replay(self, client, mock_dispatcher):
        client.post("/queue", json={
            "actionKind": "forum-post",
            "targetPath": "/api/forum/post",
            "method": "POST",
            "body": {"userId": "u1", "forumId": "f1"},
            "headers": {"Authorization": "Bearer SECRET"},
        })

        client.post("/queue/process", json={"all": True})

        method, path, payload, headers = mock_dispatcher.dispatch.call_args.args
        assert path == "/api/forum/post"
        assert headers == {"Authorization": "Bearer SECRET"}


class TestServiceEndpoints:
    """Test cases for health and root endpoints."""

    def test_health(self, client):
        signup(client)
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["queue_size"] == 1
        assert data["gc_running"] is True

    def test_root(self, client):
        data = client.get("/").json()
        assert data["endpoints"]["enqueue"] == "POST /queue"

    def test_gc_stopped_after_shutdown(self, app):
        with TestClient(app):
            assert app.state.services.gc.running is True
        assert app.state.services.gc.running is False


class TestDispatchTargetWarning:
    """Startup warns when actions would be replayed into this app."""

    def test_warns_without_dispatch_base_url(self, clock, caplog, monkeypatch):
        monkeypatch.delenv("DISPATCH_BASE_URL", raising=False)
        app = create_app(Settings(), clock=clock)

        with caplog.at_level(logging.WARNING, logger="offline_queue.main"):
            with TestClient(app):
                pass

        assert app.state.dispatch_in_process is True
        assert "DISPATCH_BASE_URL is not set" in caplog.text

    def test_quiet_with_injected_dispatcher(self, app, caplog):
        with caplog.at_level(logging.WARNING, logger="offline_queue.main"):
            with TestClient(app):
                pass

        assert app.state.dispatch_in_process is False
        assert "DISPATCH_BASE_URL is not set" not in caplog.text
