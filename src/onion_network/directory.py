import threading

from .config import HOST, REGISTRY_PORT
from .errors import DirectoryError, TransportError
from .service import BadRequest, JsonService, require_field
from .transport import HttpTransport


class Directory:
    """In-memory registry of ``{"nodeId", "pubKey"}`` records, upserted by id."""

    def __init__(self):
        self._nodes = {}
        self._lock = threading.Lock()

    def register(self, node_id, pub_key):
        if isinstance(node_id, bool) or not isinstance(node_id, int) or node_id < 0:
            raise DirectoryError(f"nodeId must be a non-negative integer, got {node_id!r}")
        if not isinstance(pub_key, str) or not pub_key:
            raise DirectoryError(f"pubKey for node {node_id} must be a non-empty string")
        record = {"nodeId": node_id, "pubKey": pub_key}
        with self._lock:
            replaced = node_id in self._nodes
            self._nodes[node_id] = record
        return replaced

    def list_nodes(self):
        with self._lock:
            return [dict(n) for n in self._nodes.values()]

    def __len__(self):
        with self._lock:
            return len(self._nodes)


class Registry(JsonService):
    """HTTP front for a :class:`Directory`."""

    def __init__(self, port=REGISTRY_PORT, host=HOST, directory=None, logger=None):
        super().__init__("Registry", port, host=host, logger=logger)
        self.directory = directory if directory is not None else Directory()
        self.route("GET", "/status", lambda body: (200, "live"))
        self.route("POST", "/registerNode", self._register_node)
        self.route("GET", "/getNodeRegistry", self._get_node_registry)

    def _register_node(self, body):
        node_id = require_field(body, "nodeId")
        pub_key = require_field(body, "pubKey")
        try:
            replaced = self.directory.register(node_id, pub_key)
        except DirectoryError as e:
            raise BadRequest(str(e))
        self.log("REGISTER", f"{'Updated' if replaced else 'Registered'} node {node_id}")
        return 200, ""

    def _get_node_registry(self, body):
        return 200, {"nodes": self.directory.list_nodes()}


class DirectoryClient:
    """Talks to a remote :class:`Registry`; duck-types as a directory for circuit selection."""

    def __init__(self, port=REGISTRY_PORT, transport=None):
        self.port = port
        self.transport = transport or HttpTransport()

    def register(self, node_id, pub_key):
        self.transport.post_json(self.port, "/registerNode", {"nodeId": node_id, "pubKey": pub_key})

    def list_nodes(self):
        data = self.transport.get_json(self.port, "/getNodeRegistry")
        nodes = data.get("nodes") if isinstance(data, dict) else None
        if not isinstance(nodes, list):
            raise TransportError("Registry response has no 'nodes' list")
        return nodes
