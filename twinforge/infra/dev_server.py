# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# DEVELOPMENT SERVER - ASSETS, LIVE RELOAD, PROXY
# -----------------------------------------------------------------------------
# Responsibility: The long-running development front door.
#
# Routes:
# - GET <public_path><file>: serve the browser output directory
# - GET /__livereload: Server-Sent Events; one message per committed change
# - everything else: forwarded to the backend on http://localhost:<PORT>
# -----------------------------------------------------------------------------

import json
import queue
import threading
from pathlib import Path

import requests
from flask import Flask, Response, jsonify, request, send_from_directory, stream_with_context
from rich.console import Console

from twinforge.core.transforms import LIVE_RELOAD_ENDPOINT

console = Console()

PROXY_TIMEOUT_SECONDS = 30
HEARTBEAT_SECONDS = 15.0
PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Headers that describe one connection, not the message
HOP_BY_HOP_HEADERS = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade", "host",
}
# requests already decoded the body; length/encoding no longer apply
STRIPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding", "content-length"}


class ReloadChannel:
    """
    Fan-out of change events to connected live-reload clients.

    Each subscriber gets its own queue, so a slow browser tab never blocks
    the watch loop.
    """

    def __init__(self) -> None:
        self._clients: list[queue.Queue] = []
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def subscribe(self) -> queue.Queue:
        client: queue.Queue = queue.Queue()
        with self._lock:
            self._clients.append(client)
        return client

    def unsubscribe(self, client: queue.Queue) -> None:
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)

    def publish(self, event: dict) -> int:
        """Queue ``event`` for every client; returns how many were notified."""
        with self._lock:
            clients = list(self._clients)
        for client in clients:
            client.put(event)
        return len(clients)


def create_app(
    output_dir: Path,
    public_path: str,
    channel: ReloadChannel,
    backend_url: str,
    heartbeat: float = HEARTBEAT_SECONDS,
) -> Flask:
    """Build the development server application."""
    app = Flask(__name__, static_folder=None)
    prefix = "/" + public_path.strip("/")
    backend_url = backend_url.rstrip("/")

    @app.route(f"{prefix}/<path:filename>", methods=["GET", "HEAD"])
    def assets(filename: str):
        """Serve a freshly built artifact."""
        response = send_from_directory(Path(output_dir).resolve(), filename)
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.route(LIVE_RELOAD_ENDPOINT, methods=["GET"])
    def live_reload():
        """Server-Sent Events stream of rebuild notifications."""
        client = channel.subscribe()

        def stream():
            try:
                yield ": connected\n\n"
                while True:
                    try:
                        event = client.get(timeout=heartbeat)
                    except queue.Empty:
                        yield ": ping\n\n"
                        continue
                    yield f"data: {json.dumps(event)}\n\n"
            finally:
                channel.unsubscribe(client)

        return Response(
            stream_with_context(stream()),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    @app.route("/", defaults={"path": ""}, methods=PROXY_METHODS)
    @app.route("/<path:path>", methods=PROXY_METHODS)
    def proxy(path: str):
        """Forward everything unmatched to the backend process."""
        url = f"{backend_url}/{path}"
        if request.query_string:
            url = f"{url}?{request.query_string.decode('latin-1')}"

        headers = {
            key: value
            for key, value in request.headers.items()
            if key.lower() not in HOP_BY_HOP_HEADERS
        }
        try:
            upstream = requests.request(
                method=request.method,
                url=url,
                headers=headers,
                data=request.get_data(),
                allow_redirects=False,
                timeout=PROXY_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            console.print(f"[yellow][DEV SERVER] Backend unreachable: {url} ({e})[/yellow]")
            return jsonify({"error": "backend unavailable", "url": url}), 502

        response_headers = [
            (key, value)
            for key, value in upstream.headers.items()
            if key.lower() not in STRIPPED_RESPONSE_HEADERS
        ]
        return Response(upstream.content, status=upstream.status_code, headers=response_headers)

    return app


def start_dev_server(app: Flask, host: str, port: int) -> threading.Thread:
    """Run the development server on a daemon thread."""
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": host, "port": port, "threaded": True, "use_reloader": False},
        daemon=True,
        name="twinforge-dev-server",
    )
    thread.start()
    console.print(f"[green][DEV SERVER] Listening on http://{host}:{port}[/green]")
    return thread
