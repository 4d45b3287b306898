import requests

from .config import HOST, REQUEST_TIMEOUT
from .errors import TransportError


class HttpTransport:
    """Moves JSON bodies between participants, addressed by port."""

    def __init__(self, host=HOST, timeout=REQUEST_TIMEOUT, session=None):
        self.host = host
        self.timeout = timeout or None
        self.session = session or requests

    def url(self, port, path):
        return f"http://{self.host}:{port}{path}"

    def _request(self, method, port, path, body=None):
        url = self.url(port, path)
        try:
            resp = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}")
        if not 200 <= resp.status_code < 300:
            raise TransportError(
                f"{method} {url} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    def post_json(self, port, path, body):
        return self._request("POST", port, path, body)

    def get_json(self, port, path):
        resp = self._request("GET", port, path)
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"GET {self.url(port, path)} returned invalid JSON: {e}")

    def get_text(self, port, path):
        return self._request("GET", port, path).text

    def deliver(self, port, message):
        """Hands one layer (or the final plaintext) to whoever listens on ``port``."""
        self.post_json(port, "/message", {"message": message})
