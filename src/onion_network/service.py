import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

from .config import HOST
from .logger import component_logger


class BadRequest(Exception):
    """Raised by route handlers for malformed request bodies (answered with 400)."""


class JsonService:
    """Small JSON-over-HTTP service: a route table served from a daemon thread.

    Handlers take the decoded JSON body (``None`` for GET) and return
    ``(status, payload)``. A ``str`` payload is sent as text/plain, anything
    else is JSON-encoded.
    """

    def __init__(self, name, port, host=HOST, logger=None):
        self.name = name
        self.host = host
        self.port = port
        self.address = f"{host}:{port}"
        self.logger = logger or component_logger(f"{name}@{port}")
        self.lock = threading.Lock()
        self.routes = {}
        self._server = None
        self._thread = None

    def log(self, action, msg):
        """Helper method for logging."""
        self.logger(action, msg)

    def route(self, method, path, handler):
        self.routes[(method.upper(), path)] = handler

    @property
    def running(self):
        return self._server is not None

    def start(self):
        """Binds the port and starts serving in a background thread."""
        if self._server is not None:
            return self
        self._server = ThreadingHTTPServer((self.host, self.port), self._make_handler())
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        self.log("START", f"Listening on {self.address}")
        return self

    def stop(self):
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None
        self.log("STOP", f"Closed {self.address}")

    def dispatch(self, method, path, body):
        handler = self.routes.get((method, path))
        if handler is None:
            return 404, f"Cannot {method} {path}"
        try:
            return handler(body)
        except BadRequest as e:
            self.log("REQUEST_WARN", f"{method} {path} rejected: {e}")
            return 400, str(e)

    def _make_handler(self):
        service = self

        class Handler(BaseHTTPRequestHandler):
            def _handle(self, method):
                path = urlparse(self.path).path
                body = None
                if method == "POST":
                    try:
                        length = int(self.headers.get("Content-Length") or 0)
                        if length < 0:
                            raise ValueError(f"negative Content-Length {length}")
                        raw = self.rfile.read(length) if length else b""
                        body = json.loads(raw.decode("utf-8")) if raw else {}
                    except ValueError as e:
                        # covers UnicodeDecodeError and JSONDecodeError too
                        self._send(400, f"Invalid request body: {e}")
                        return
                try:
                    status, payload = service.dispatch(method, path, body)
                except Exception as e:
                    service.log("REQUEST_ERROR", f"{method} {path} failed: {type(e).__name__} - {e}")
                    status, payload = 500, str(e) or type(e).__name__
                self._send(status, payload)

            def _send(self, status, payload):
                if isinstance(payload, str):
                    data = payload.encode("utf-8")
                    content_type = "text/plain; charset=utf-8"
                else:
                    data = json.dumps(payload).encode("utf-8")
                    content_type = "application/json"
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(data)))
                self.end_headers()
                self.wfile.write(data)

            def do_GET(self):
                self._handle("GET")

            def do_POST(self):
                self._handle("POST")

            def log_message(self, format, *args):
                service.log("HTTP", format % args)

        return Handler


def require_field(body, name):
    if not isinstance(body, dict) or name not in body:
        raise BadRequest(f"Missing field '{name}'")
    return body[name]
