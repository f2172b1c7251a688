"""
Task Callback Route Tests

POST /callback/{user_id} and /callback/{user_id}/stream.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from bindings import Binding
from infra import InfraBootstrap
from main import app
from transport.wechat.sender import WeChatSender

USER = "oUser123"


@pytest.fixture
def client(bootstrap):
    return TestClient(app)


@pytest.fixture
def bound(binding_store):
    binding_store.storage[USER] = Binding(user_id=USER, endpoint_url="https://x.example/webhook", token="t")


class TestResultCallback:
    """Test final result delivery."""

    def test_success_pushes_result(self, client, fake_sender, bound):
        response = client.post(f"/callback/{USER}", json={"success": True, "result": "done"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert fake_sender.sent == [(USER, "done")]

    def test_failure_pushes_error(self, client, fake_sender, bound):
        response = client.post(f"/callback/{USER}", json={"success": False, "error": "x"})

        assert response.status_code == 200
        user_id, text = fake_sender.sent[0]
        assert user_id == USER
        assert text.endswith("x")

    def test_thinking_time(self, client, fake_sender, bound):
        client.post(
            f"/callback/{USER}",
            json={"success": True, "result": "ok", "metadata": {"chunks": 2, "thinking_time_ms": 1500}},
        )

        assert fake_sender.sent[0][1].endswith("1.5s")

    def test_unbound_user_still_delivered(self, client, fake_sender):
        response = client.post("/callback/oGone", json={"success": True, "result": "late"})

        assert response.status_code == 200
        assert fake_sender.sent == [("oGone", "late")]

    def test_push_failure_returns_500(self, client, fake_sender, bound):
        fake_sender.succeed = False

        response = client.post(f"/callback/{USER}", json={"success": True, "result": "done"})

        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Failed to send WeChat message"}

    def test_invalid_body(self, client, fake_sender):
        response = client.post(f"/callback/{USER}", json={"result": "no success flag"})

        assert response.status_code == 422
        assert fake_sender.sent == []


class TestStreamCallback:
    """Test streamed chunks."""

    def test_intermediate_chunk_buffered(self, client, fake_sender):
        response = client.post(f"/callback/{USER}/stream", json={"chunk": "a", "done": False, "chunk_index": 0})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "buffered": True}
        assert fake_sender.sent == []

    def test_done_chunk_pushed(self, client, fake_sender):
        client.post(f"/callback/{USER}/stream", json={"chunk": "a", "chunk_index": 0})
        response = client.post(f"/callback/{USER}/stream", json={"chunk": "final", "done": True})

        assert response.json() == {"ok": True}
        assert fake_sender.sent == [(USER, "final")]


class TestUnexpectedPlatformResponse:
    """Test callbacks when the platform answers with an unexpected body."""

    @pytest.fixture
    def client(self, bootstrap, binding_store):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["unexpected"]))
        sender = WeChatSender("wx_app", "secret", client=httpx.AsyncClient(transport=transport))
        InfraBootstrap.install(
            InfraBootstrap(config=bootstrap.config, binding_store=binding_store, sender=sender)
        )
        return TestClient(app)

    def test_result_callback_reports_failure(self, client):
        response = client.post(f"/callback/{USER}", json={"success": True, "result": "done"})

        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Failed to send WeChat message"}

    def test_stream_done_reports_failure(self, client):
        response = client.post(f"/callback/{USER}/stream", json={"chunk": "final", "done": True})

        assert response.status_code == 200
        assert response.json() == {"ok": False}


class TestHealth:
    """Test health endpoints."""

    def test_live(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_ready(self, client):
        assert client.get("/health/ready").json() == {"status": "ready"}
