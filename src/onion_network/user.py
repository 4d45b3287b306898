from typing import List, Optional

from .circuit import CircuitBuilder, UsageTracker
from .config import BASE_ONION_ROUTER_PORT, BASE_USER_PORT, CIRCUIT_LENGTH, HOST, REGISTRY_PORT
from .directory import DirectoryClient
from .errors import OnionNetworkError
from .key_codec import KeyCodec
from .service import BadRequest, JsonService, require_field
from .transport import HttpTransport


class User(JsonService):
    """A client process: builds a fresh circuit per message and receives plaintext."""

    def __init__(self, user_id, port=None, host=HOST, base_port=BASE_USER_PORT,
                 base_router_port=BASE_ONION_ROUTER_PORT, registry_port=REGISTRY_PORT,
                 transport=None, directory=None, tracker=None, rng=None,
                 circuit_length=CIRCUIT_LENGTH, logger=None):
        port = base_port + user_id if port is None else port
        super().__init__(f"User{user_id}", port, host=host, logger=logger)
        self.user_id = user_id
        self.base_port = base_port
        self.circuit_length = circuit_length
        self.transport = transport or HttpTransport(host=host)
        self.directory = directory or DirectoryClient(registry_port, transport=self.transport)
        self.tracker = tracker if tracker is not None else UsageTracker()
        self.builder = CircuitBuilder(self.tracker, rng=rng, base_router_port=base_router_port,
                                      logger=self.logger)

        self.last_received_message: Optional[str] = None
        self.last_sent_message: Optional[str] = None
        self.last_circuit: Optional[List[int]] = None

        self.route("GET", "/status", lambda body: (200, "live"))
        self.route("GET", "/getLastReceivedMessage", lambda body: (200, {"result": self.last_received_message}))
        self.route("GET", "/getLastSentMessage", lambda body: (200, {"result": self.last_sent_message}))
        self.route("GET", "/getLastCircuit", lambda body: (200, {"result": self.last_circuit}))
        self.route("GET", "/testEncryption", lambda body: (200, KeyCodec.self_test()))
        self.route("POST", "/message", self._message)
        self.route("POST", "/sendMessage", self._send_message)

    def receive_message(self, message):
        message = "" if message is None else message
        with self.lock:
            self.last_received_message = message
        self.log("RECEIVE", f'Received message: "{message}"')

    def send_message(self, message, destination_user_id):
        """Onion-wraps ``message`` for user ``destination_user_id`` and hands it to the entry relay."""
        message = "" if message is None else message
        if isinstance(destination_user_id, bool) or not isinstance(destination_user_id, int) \
                or destination_user_id < 0:
            self.log("SEND_WARN", f"Invalid destination {destination_user_id!r}, using user 0")
            destination_user_id = 0
        with self.lock:
            self.last_sent_message = message

        final_destination = self.base_port + destination_user_id
        self.log("SEND", f'Sending "{message[:80]}" to user {destination_user_id} ({final_destination})')

        circuit = self.builder.select_circuit(self.directory, self.circuit_length)
        with self.lock:
            self.last_circuit = list(self.builder.last_circuit)
        onion = self.builder.build_onion(message, circuit, final_destination)

        entry_port = self.builder.router_port(circuit[0])
        self.log("SEND", f"Handing onion to entry node {circuit[0]['nodeId']} at {entry_port}")
        self.transport.deliver(entry_port, onion)
        return circuit

    def _message(self, body):
        self.receive_message(require_field(body, "message"))
        return 200, "success"

    def _send_message(self, body):
        message = require_field(body, "message")
        if message is not None and not isinstance(message, str):
            raise BadRequest("Field 'message' must be a string")
        destination = body.get("destinationUserId")
        try:
            self.send_message(message, destination)
        except OnionNetworkError as e:
            self.log("SEND_ERROR", f"{type(e).__name__}: {e}")
            return 500, str(e)
        return 200, "success"
