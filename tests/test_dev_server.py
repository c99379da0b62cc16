"""
Tests for the development server: assets, live reload and backend proxy.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from twinforge.core.transforms import LIVE_RELOAD_ENDPOINT
from twinforge.infra.dev_server import ReloadChannel, create_app


@pytest.fixture
def channel():
    return ReloadChannel()


@pytest.fixture
def dist(tmp_path):
    out = tmp_path / "dist"
    out.mkdir()
    (out / "app.js").write_text("console.log(1);\n")
    return out


@pytest.fixture
def client(dist, channel):
    app = create_app(dist, "/dist/", channel, "http://localhost:6969/", heartbeat=0.01)
    app.config["TESTING"] = True
    return app.test_client()


def upstream(status=200, content=b"ok", headers=None):
    response = MagicMock()
    response.status_code = status
    response.content = content
    response.headers = headers or {"Content-Type": "text/plain"}
    return response


class TestReloadChannel:
    def test_publish_to_every_client(self, channel):
        a = channel.subscribe()
        b = channel.subscribe()

        assert channel.publish({"type": "rebuild"}) == 2
        assert a.get_nowait() == {"type": "rebuild"}
        assert b.get_nowait() == {"type": "rebuild"}

    def test_unsubscribe(self, channel):
        client = channel.subscribe()
        channel.unsubscribe(client)
        channel.unsubscribe(client)
        assert channel.client_count == 0
        assert channel.publish({"type": "rebuild"}) == 0


class TestAssets:
    def test_serves_output(self, client):
        response = client.get("/dist/app.js")
        assert response.status_code == 200
        assert response.data == b"console.log(1);\n"
        assert response.headers["Cache-Control"] == "no-store"

    def test_missing_asset(self, client):
        with patch("twinforge.infra.dev_server.requests.request") as mock_request:
            assert client.get("/dist/nope.js").status_code == 404
            mock_request.assert_not_called()


class TestLiveReload:
    def test_stream(self, client, channel):
        response = client.get(LIVE_RELOAD_ENDPOINT)
        assert response.mimetype == "text/event-stream"

        chunks = iter(response.response)
        assert next(chunks) == b": connected\n\n"
        assert channel.client_count == 1

        channel.publish({"type": "change", "source": "app.js", "name": "app.js"})
        assert next(chunks) == b'data: {"type": "change", "source": "app.js", "name": "app.js"}\n\n'
        assert next(chunks) == b": ping\n\n"
        response.close()


class TestProxy:
    def test_forwards_request(self, client):
        with patch(
            "twinforge.infra.dev_server.requests.request",
            return_value=upstream(201, b'{"id": 1}', {
                "Content-Type": "application/json",
                "Content-Length": "9",
                "Content-Encoding": "gzip",
                "X-Backend": "yes",
            }),
        ) as mock_request:
            response = client.post("/api/items?page=2", data=b'{"name": "x"}',
                                   headers={"X-Token": "t"})

        assert response.status_code == 201
        assert response.data == b'{"id": 1}'
        assert response.headers["X-Backend"] == "yes"
        assert "Content-Encoding" not in response.headers

        kwargs = mock_request.call_args[1]
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "http://localhost:6969/api/items?page=2"
        assert kwargs["data"] == b'{"name": "x"}'
        assert kwargs["headers"]["X-Token"] == "t"
        assert "Host" not in kwargs["headers"]
        assert kwargs["allow_redirects"] is False

    def test_root_path(self, client):
        with patch(
            "twinforge.infra.dev_server.requests.request", return_value=upstream()
        ) as mock_request:
            assert client.get("/").status_code == 200
        assert mock_request.call_args[1]["url"] == "http://localhost:6969/"

    def test_backend_down(self, client):
        with patch(
            "twinforge.infra.dev_server.requests.request",
            side_effect=requests.ConnectionError("refused"),
        ):
            response = client.get("/api/items")

        assert response.status_code == 502
        assert response.get_json()["error"] == "backend unavailable"
