import random
import threading

from .config import BASE_ONION_ROUTER_PORT, CIRCUIT_LENGTH
from .errors import EmptyDirectoryError
from .key_codec import KeyCodec
from .logger import component_logger
from .wire import MAX_MESSAGE_LENGTH, create_header, create_layer, truncate_message


class UsageTracker:
    """Per-node selection counters that live as long as the owning client."""

    def __init__(self, counts=None):
        self._counts = dict(counts or {})
        self._lock = threading.Lock()

    def count(self, node_id):
        with self._lock:
            return self._counts.get(node_id, 0)

    def weight(self, node_id):
        return 1 / (self.count(node_id) + 1)

    def increment(self, node_id):
        with self._lock:
            self._counts[node_id] = self._counts.get(node_id, 0) + 1
            return self._counts[node_id]

    def snapshot(self):
        with self._lock:
            return dict(self._counts)


class CircuitBuilder:
    def __init__(self, tracker=None, rng=None, base_router_port=BASE_ONION_ROUTER_PORT,
                 max_message_length=MAX_MESSAGE_LENGTH, logger=None):
        self.tracker = tracker if tracker is not None else UsageTracker()
        self.rng = rng or random.Random()
        self.base_router_port = base_router_port
        self.max_message_length = max_message_length
        self.logger = logger or component_logger("CircuitBuilder")
        self.last_circuit = None
        self._lock = threading.Lock()

    def log(self, action, msg):
        self.logger(action, msg)

    def router_port(self, node):
        return self.base_router_port + node["nodeId"]

    def select_circuit(self, directory, path_length=CIRCUIT_LENGTH):
        """Picks ``path_length`` nodes, favoring the least used ones.

        Weighted roulette without replacement within one circuit; the pool is
        padded with repeats when the directory is smaller than the path.
        """
        nodes = list(directory.list_nodes())
        if not nodes:
            raise EmptyDirectoryError("No nodes available in the registry.")

        pool = list(nodes)
        if len(pool) < path_length:
            self.log("SELECT_WARN", f"Only {len(nodes)} node(s) registered, circuit will reuse nodes.")
            i = 0
            while len(pool) < path_length:
                pool.append(nodes[i % len(nodes)])
                i += 1

        selected = []
        # Counters are read and bumped under one lock so concurrent sends see consistent weights
        with self._lock:
            for _ in range(path_length):
                weights = [self.tracker.weight(n["nodeId"]) for n in pool]
                remaining = sum(weights) * self.rng.random()
                chosen_index = None
                for index, weight in enumerate(weights):
                    remaining -= weight
                    if remaining <= 0:
                        chosen_index = index
                        break
                if chosen_index is None:
                    # float rounding left a sliver of the wheel unclaimed
                    chosen_index = len(pool) - 1
                node = pool[chosen_index]
                selected.append(node)
                self.tracker.increment(node["nodeId"])
                if len(pool) > 1:
                    del pool[chosen_index]

            self.last_circuit = [n["nodeId"] for n in selected]
        self.log("SELECT", f"Circuit: {' -> '.join(str(i) for i in self.last_circuit)}")
        return selected

    def create_encryption_layer(self, payload, sym_key, node_pub_key, next_destination):
        """Wraps ``payload`` for one hop: RSA(sym key) || AES(header || payload)."""
        cipher_payload = KeyCodec.sym_encrypt(sym_key, create_header(next_destination, payload))
        wrapped_key = KeyCodec.rsa_encrypt(KeyCodec.export_sym_key(sym_key), node_pub_key)
        return create_layer(wrapped_key, cipher_payload)

    def build_onion(self, plaintext, circuit, final_destination):
        if not circuit:
            raise ValueError("Cannot build an onion for an empty circuit")
        message = "" if plaintext is None else plaintext
        if len(message) > self.max_message_length:
            self.log("BUILD_WARN",
                     f"Message too long ({len(message)} chars), truncating to {self.max_message_length} chars")
            message = truncate_message(message, self.max_message_length)

        sym_keys = [KeyCodec.generate_symmetric_key() for _ in circuit]
        current = message
        for i in range(len(circuit) - 1, -1, -1):
            if i == len(circuit) - 1:
                next_destination = final_destination
            else:
                next_destination = self.router_port(circuit[i + 1])
            current = self.create_encryption_layer(current, sym_keys[i], circuit[i]["pubKey"], next_destination)
            self.log("BUILD", f"Layer {i} for node {circuit[i]['nodeId']} -> {next_destination} "
                              f"({len(current)} chars)")
        return current
