import random
import unittest

from onion_network.circuit import CircuitBuilder, UsageTracker
from onion_network.errors import EmptyDirectoryError
from onion_network.key_codec import KeyCodec
from onion_network.relay import Forward, RelayPeeler
from onion_network.wire import WRAPPED_KEY_LENGTH


def quiet(action, msg):
    pass


class StaticDirectory:
    def __init__(self, nodes):
        self.nodes = nodes

    def list_nodes(self):
        return list(self.nodes)


def make_nodes(count):
    return [{"nodeId": i, "pubKey": f"K{i}"} for i in range(1, count + 1)]


class TestSelectCircuit(unittest.TestCase):
    def builder(self, seed=7, tracker=None):
        return CircuitBuilder(tracker, rng=random.Random(seed), logger=quiet)

    def test_empty_directory(self):
        with self.assertRaises(EmptyDirectoryError):
            self.builder().select_circuit(StaticDirectory([]))

    def test_always_three_hops(self):
        for size in (1, 2, 3, 100):
            circuit = self.builder().select_circuit(StaticDirectory(make_nodes(size)))
            self.assertEqual(len(circuit), 3, f"directory of {size}")

    def test_distinct_when_enough_nodes(self):
        for size in (3, 100):
            for seed in range(20):
                circuit = self.builder(seed).select_circuit(StaticDirectory(make_nodes(size)))
                self.assertEqual(len({n["nodeId"] for n in circuit}), 3)

    def test_single_node_repeats(self):
        builder = self.builder()
        circuit = builder.select_circuit(StaticDirectory(make_nodes(1)))
        self.assertEqual([n["nodeId"] for n in circuit], [1, 1, 1])
        self.assertEqual(builder.tracker.count(1), 3)

    def test_two_nodes_use_both_ids_only(self):
        circuit = self.builder().select_circuit(StaticDirectory(make_nodes(2)))
        self.assertTrue({n["nodeId"] for n in circuit} <= {1, 2})

    def test_counters_and_last_circuit(self):
        builder = self.builder()
        circuit = builder.select_circuit(StaticDirectory(make_nodes(3)))
        self.assertEqual(builder.tracker.snapshot(), {1: 1, 2: 1, 3: 1})
        self.assertEqual(builder.last_circuit, [n["nodeId"] for n in circuit])

    def test_tracker_persists_across_circuits(self):
        tracker = UsageTracker()
        builder = self.builder(tracker=tracker)
        directory = StaticDirectory(make_nodes(5))
        for _ in range(100):
            builder.select_circuit(directory)
        counts = tracker.snapshot()
        self.assertEqual(sum(counts.values()), 300)
        self.assertLessEqual(max(counts.values()) - min(counts.values()), 30)

    def test_frequency_is_inverse_to_usage(self):
        directory = StaticDirectory(make_nodes(2))
        rng = random.Random(1234)
        picks = {1: 0, 2: 0}
        for _ in range(2000):
            builder = CircuitBuilder(UsageTracker({1: 0, 2: 9}), rng=rng, logger=quiet)
            picks[builder.select_circuit(directory, path_length=1)[0]["nodeId"]] += 1
        self.assertGreater(picks[1], 4 * picks[2])
        self.assertGreater(picks[2], 0)

    def test_weight(self):
        tracker = UsageTracker({4: 3})
        self.assertEqual(tracker.weight(4), 0.25)
        self.assertEqual(tracker.weight(5), 1.0)
        self.assertEqual(tracker.increment(4), 4)


class TestBuildOnion(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.pairs = {i: KeyCodec.generate_rsa_key_pair() for i in (1, 2, 3)}
        cls.circuit = [{"nodeId": i, "pubKey": KeyCodec.export_pub_key(cls.pairs[i].public_key)}
                       for i in (1, 2, 3)]
        cls.peelers = {i: RelayPeeler(pair.private_key, fallback_destination=4001, logger=quiet)
                       for i, pair in cls.pairs.items()}

    def peel_through(self, layer):
        hops = []
        for node in self.circuit:
            result = self.peelers[node["nodeId"]].peel(layer)
            self.assertIsInstance(result, Forward)
            hops.append(result)
            layer = result.payload
        return hops

    def test_onion_round_trip(self):
        builder = CircuitBuilder(base_router_port=4000, logger=quiet)
        onion = builder.build_onion("hello", self.circuit, 3007)
        hops = self.peel_through(onion)
        self.assertEqual([h.destination for h in hops], [4002, 4003, 3007])
        self.assertEqual(hops[-1].payload, "hello")
        self.assertGreater(len(hops[0].payload), WRAPPED_KEY_LENGTH)

    def test_empty_and_none_messages(self):
        builder = CircuitBuilder(logger=quiet)
        self.assertEqual(self.peel_through(builder.build_onion("", self.circuit, 3001))[-1].payload, "")
        self.assertEqual(self.peel_through(builder.build_onion(None, self.circuit, 3001))[-1].payload, "")

    def test_only_the_right_relay_can_peel(self):
        builder = CircuitBuilder(logger=quiet)
        onion = builder.build_onion("hello", self.circuit, 3007)
        result = self.peelers[2].peel(onion)
        self.assertTrue(result.degraded)
        self.assertEqual(result.destination, 4001)

    def test_fresh_keys_per_message(self):
        builder = CircuitBuilder(logger=quiet)
        self.assertNotEqual(builder.build_onion("hi", self.circuit, 3007),
                            builder.build_onion("hi", self.circuit, 3007))

    def test_long_messages_are_truncated(self):
        builder = CircuitBuilder(max_message_length=50, logger=quiet)
        onion = builder.build_onion("m" * 80, self.circuit, 3007)
        self.assertEqual(self.peel_through(onion)[-1].payload, "m" * 50)

    def test_empty_circuit(self):
        with self.assertRaises(ValueError):
            CircuitBuilder(logger=quiet).build_onion("hello", [], 3007)


if __name__ == "__main__":
    unittest.main()
