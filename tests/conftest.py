import json
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlparse

import pytest

SLOW_RESPONSE_DELAY = 2.0


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass

    def _route(self):
        parsed = urlparse(self.path)
        query = parse_qs(parsed.query)
        length = int(self.headers.get('Content-Length') or 0)
        body = self.rfile.read(length) if length else b""

        if parsed.path == "/success":
            self._reply(200, json.dumps({"Message": "Works!"}).encode(), "application/json")
        elif parsed.path == "/echo":
            self._reply(200, query.get("msg", [""])[0].encode(), "text/plain; charset=utf-8")
        elif parsed.path == "/timeout":
            time.sleep(SLOW_RESPONSE_DELAY)
            try:
                self._reply(200, body, "text/plain")
            except (BrokenPipeError, ConnectionResetError):
                pass
        elif parsed.path == "/status":
            self._reply(int(query.get("code", ["200"])[0]), b"", None)
        elif parsed.path == "/malformed":
            self._reply(200, b"{not json", "application/json")
        elif parsed.path == "/headers":
            payload = {k.lower(): v for k, v in self.headers.items()}
            payload["x-method"] = self.command
            payload["x-body"] = body.decode()
            self._reply(200, json.dumps(payload).encode(), "application/json")
        else:
            self._reply(404, b"", None)

    def _reply(self, code: int, body: bytes, content_type: Optional[str]):
        self.send_response(code)
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = _route


@pytest.fixture(scope="session")
def server_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def refused_url():
    """URL of a local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"
