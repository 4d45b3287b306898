from dataclasses import dataclass
from typing import Optional

from .config import BASE_ONION_ROUTER_PORT, FALLBACK_DESTINATION, HOST, REGISTRY_PORT
from .directory import DirectoryClient
from .errors import DecryptionError, KeyCodecError, MalformedLayerError, TransportError
from .key_codec import KeyCodec
from .logger import component_logger
from .service import JsonService, require_field
from .transport import HttpTransport
from .wire import split_header, split_layer


@dataclass(frozen=True)
class Forward:
    destination: int
    payload: str
    degraded = False


@dataclass(frozen=True)
class Degraded:
    destination: int
    reason: str
    payload: str = ""
    degraded = True


class RelayPeeler:
    """Peels one layer: unwrap key, decrypt payload, parse the next-hop header.

    Never raises on bad input; anything it cannot peel comes back as
    :class:`Degraded` pointing at the fallback destination.
    """

    def __init__(self, private_key, fallback_destination=FALLBACK_DESTINATION, logger=None):
        self.private_key = private_key
        self.fallback_destination = fallback_destination
        self.logger = logger or component_logger("RelayPeeler")

    def log(self, action, msg):
        self.logger(action, msg)

    def _degrade(self, state, error):
        reason = f"{state}: {error}"
        self.log("PEEL_WARN", f"Degraded at {reason}; falling back to {self.fallback_destination}")
        return Degraded(self.fallback_destination, reason)

    def peel(self, layer):
        state = "Received"
        try:
            wrapped_key, cipher_payload = split_layer(layer)
            sym_key_text = KeyCodec.rsa_decrypt(wrapped_key, self.private_key)

            state = "KeyUnwrapped"
            sym_key = KeyCodec.import_sym_key(sym_key_text)
            plaintext = KeyCodec.sym_decrypt(sym_key, cipher_payload)

            state = "PayloadDecrypted"
            destination, payload = split_header(plaintext)
        except (DecryptionError, MalformedLayerError, KeyCodecError) as e:
            return self._degrade(state, e)

        self.log("PEEL", f"Header parsed, next hop {destination} ({len(payload)} chars)")
        return Forward(destination, payload)


class OnionRouter(JsonService):
    """A relay process: owns a key pair, peels what it receives and forwards it."""

    def __init__(self, node_id, port=None, host=HOST, base_port=BASE_ONION_ROUTER_PORT,
                 registry_port=REGISTRY_PORT, fallback_destination=None, transport=None,
                 logger=None, key_pair=None):
        port = base_port + node_id if port is None else port
        super().__init__(f"Router{node_id}", port, host=host, logger=logger)
        self.node_id = node_id
        self.transport = transport or HttpTransport(host=host)
        self.directory = DirectoryClient(registry_port, transport=self.transport)
        self.key_pair = key_pair or KeyCodec.generate_rsa_key_pair()
        self.public_key_text = KeyCodec.export_pub_key(self.key_pair.public_key)
        if fallback_destination is None:
            fallback_destination = base_port + 1
        self.peeler = RelayPeeler(self.key_pair.private_key, fallback_destination, logger=self.logger)

        self.last_received_encrypted_message: Optional[str] = None
        self.last_received_decrypted_message: Optional[str] = None
        self.last_message_destination: Optional[int] = None
        self.received_count = 0

        self.route("GET", "/status", lambda body: (200, "live"))
        self.route("GET", "/getPrivateKey", self._get_private_key)
        self.route("GET", "/getLastReceivedEncryptedMessage",
                   lambda body: (200, {"result": self.last_received_encrypted_message}))
        self.route("GET", "/getLastReceivedDecryptedMessage",
                   lambda body: (200, {"result": self.last_received_decrypted_message}))
        self.route("GET", "/getLastMessageDestination",
                   lambda body: (200, {"result": self.last_message_destination}))
        self.route("POST", "/message", self._message)

    def start(self):
        """Starts listening, then announces the public key to the registry."""
        super().start()
        try:
            self.directory.register(self.node_id, self.public_key_text)
        except TransportError as e:
            self.log("REGISTER_ERROR", f"Failed to register node {self.node_id}: {e}")
            self.stop()
            raise
        self.log("REGISTER", f"Registered node {self.node_id} with the registry")
        return self

    def _get_private_key(self, body):
        return 200, {"result": KeyCodec.export_prv_key(self.key_pair.private_key)}

    def receive_layer(self, layer):
        """Peels ``layer``, records the diagnostics slots and forwards the rest.

        A degraded result is never forwarded back to this router's own port,
        and a failed fallback forward is logged rather than raised. Forward
        failures on a successful peel raise :class:`TransportError`.
        """
        result = self.peeler.peel(layer)
        with self.lock:
            self.received_count += 1
            self.last_received_encrypted_message = layer
            self.last_received_decrypted_message = result.payload
            self.last_message_destination = result.destination
        if not result.degraded:
            self.log("FORWARD", f"Forwarding {len(result.payload)} chars to {result.destination}")
            self.transport.deliver(result.destination, result.payload)
            return result

        if result.destination == self.port:
            self.log("FORWARD_WARN", "Fallback destination is this router, dropping degraded message")
            return result
        self.log("FORWARD", f"Forwarding empty payload to fallback {result.destination} (degraded)")
        try:
            self.transport.deliver(result.destination, result.payload)
        except TransportError as e:
            self.log("FORWARD_WARN", f"Fallback forward failed: {e}")
        return result

    def _message(self, body):
        layer = require_field(body, "message")
        try:
            self.receive_layer(layer)
        except TransportError as e:
            self.log("FORWARD_ERROR", str(e))
            return 500, str(e)
        return 200, "success"
