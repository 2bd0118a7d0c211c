import unittest
from decimal import Decimal

from solviz.core.dto import WalletRecord
from solviz.core.enums import NodeType
from solviz.core.models import ClassifierConfig, Connection
from solviz.services.graph_builder import build_graph, classify_wallet, select_root

SOL = 1_000_000_000
JUPITER_V6 = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
SYSTEM_PROGRAM = "11111111111111111111111111111111"


def _conn(src, dst, count=1, value="0", category=None):
    return Connection(
        source=src,
        target=dst,
        value=Decimal(value),
        transaction_count=count,
        protocol_category=category,
    )


class ClassifyWalletTests(unittest.TestCase):
    def test_protocol_tag_beats_everything(self) -> None:
        w = WalletRecord("A", balance=100 * SOL, type="exchange", protocol_category="dex")
        self.assertEqual(classify_wallet(w, 10), NodeType.PROTOCOL)

    def test_native_category_is_contract(self) -> None:
        w = WalletRecord("A", protocol_category="native")
        self.assertEqual(classify_wallet(w, 0), NodeType.CONTRACT)

    def test_explicit_type_beats_activity(self) -> None:
        w = WalletRecord("A", type="user")
        self.assertEqual(classify_wallet(w, 10), NodeType.USER)

    def test_unknown_explicit_type_falls_through(self) -> None:
        w = WalletRecord("A", type="unknown", balance=20 * SOL)
        self.assertEqual(classify_wallet(w, 0), NodeType.EXCHANGE)

    def test_connection_count_threshold(self) -> None:
        w = WalletRecord("A")
        self.assertEqual(classify_wallet(w, 4), NodeType.HIGH_ACTIVITY)
        self.assertEqual(classify_wallet(w, 3), NodeType.UNKNOWN)

    def test_balance_thresholds(self) -> None:
        self.assertEqual(classify_wallet(WalletRecord("A", balance=11 * SOL), 0), NodeType.EXCHANGE)
        self.assertEqual(classify_wallet(WalletRecord("A", balance=2 * SOL), 0), NodeType.USER)
        self.assertEqual(classify_wallet(WalletRecord("A", balance=SOL), 0), NodeType.UNKNOWN)

    def test_thresholds_are_configurable(self) -> None:
        cfg = ClassifierConfig(high_activity_connections=1)
        self.assertEqual(classify_wallet(WalletRecord("A"), 2, cfg), NodeType.HIGH_ACTIVITY)


class SelectRootTests(unittest.TestCase):
    def test_highest_count_first_on_ties(self) -> None:
        wallets = [
            WalletRecord("A", transaction_count=3),
            WalletRecord("B", transaction_count=7),
            WalletRecord("C", transaction_count=7),
        ]
        self.assertEqual(select_root(wallets), "B")

    def test_empty(self) -> None:
        self.assertIsNone(select_root([]))


class BuildGraphTests(unittest.TestCase):
    def test_single_wallet_no_connections(self) -> None:
        g = build_graph([WalletRecord("A", transaction_count=2)], [])

        self.assertEqual(list(g.nodes), ["A"])
        self.assertEqual(g.edges, [])
        self.assertTrue(g.nodes["A"].is_root)

    def test_every_edge_endpoint_is_a_node(self) -> None:
        wallets = [WalletRecord("A", transaction_count=5)]
        conns = [_conn("A", "B"), _conn("C", "D", 2), _conn("B", "A")]

        g = build_graph(wallets, conns)

        for e in g.edges:
            self.assertIn(e.source, g.nodes)
            self.assertIn(e.target, g.nodes)
        self.assertEqual(len(g.edges), 3)

    def test_at_most_one_root(self) -> None:
        wallets = [WalletRecord(a, transaction_count=5) for a in "ABC"]

        g = build_graph(wallets, [_conn("A", "B"), _conn("B", "C")])

        roots = [n for n in g.nodes.values() if n.is_root]
        self.assertEqual([n.id for n in roots], ["A"])

    def test_root_override(self) -> None:
        wallets = [WalletRecord("A", transaction_count=9), WalletRecord("B", transaction_count=1)]

        g = build_graph(wallets, [_conn("A", "B")], root_address="B")

        self.assertTrue(g.nodes["B"].is_root)
        self.assertFalse(g.nodes["A"].is_root)

    def test_unknown_root_override_falls_back(self) -> None:
        g = build_graph([WalletRecord("A", transaction_count=1)], [], root_address="Z")
        self.assertTrue(g.nodes["A"].is_root)

    def test_root_without_known_wallets(self) -> None:
        g = build_graph([], [_conn("A", "B", 2), _conn("C", "B", 3)])

        self.assertEqual(g.root.id, "B")

    def test_placeholder_nodes(self) -> None:
        g = build_graph([WalletRecord("A", balance=5 * SOL)], [_conn("A", "B", 4)])

        b = g.nodes["B"]
        self.assertTrue(b.placeholder)
        self.assertEqual(b.balance, 500)
        self.assertEqual(b.transaction_count, 4)
        self.assertEqual(b.node_type, NodeType.UNKNOWN)
        self.assertFalse(g.nodes["A"].placeholder)

    def test_placeholder_for_known_program(self) -> None:
        g = build_graph([], [_conn("A", JUPITER_V6), _conn("A", SYSTEM_PROGRAM)])

        self.assertEqual(g.nodes[JUPITER_V6].node_type, NodeType.PROTOCOL)
        self.assertEqual(g.nodes[JUPITER_V6].label, "Jupiter Aggregator v6")
        self.assertEqual(g.nodes[SYSTEM_PROGRAM].node_type, NodeType.CONTRACT)

    def test_placeholder_inherits_connection_protocol(self) -> None:
        g = build_graph([], [_conn("A", "B", category="lending")])

        self.assertEqual(g.nodes["B"].node_type, NodeType.PROTOCOL)
        self.assertEqual(g.nodes["B"].display_type, "protocol:lending")

    def test_missing_balance_uses_default(self) -> None:
        g = build_graph([WalletRecord("A")], [])
        self.assertEqual(g.nodes["A"].balance, 1000)
        self.assertEqual(g.nodes["A"].transaction_count, 1)

    def test_labels_prefer_resolved_names(self) -> None:
        addr = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
        g = build_graph(
            [WalletRecord(addr, label="mint"), WalletRecord("B", label="bee")],
            [],
            names={addr: "USDC"},
        )

        self.assertEqual(g.nodes[addr].label, "USDC")
        self.assertEqual(g.nodes["B"].label, "bee")

    def test_degree_drives_classification(self) -> None:
        conns = [_conn("A", t) for t in "BCDE"]

        g = build_graph([WalletRecord("A")], conns)

        self.assertEqual(g.nodes["A"].node_type, NodeType.HIGH_ACTIVITY)

    def test_duplicate_wallets_and_self_loops_ignored(self) -> None:
        wallets = [WalletRecord("A", transaction_count=1), WalletRecord("A", transaction_count=9)]

        g = build_graph(wallets, [_conn("A", "A")])

        self.assertEqual(len(g.nodes), 1)
        self.assertEqual(g.nodes["A"].transaction_count, 1)
        self.assertEqual(g.edges, [])

    def test_inputs_are_not_mutated(self) -> None:
        conns = [_conn("A", "B", 2, "5")]
        build_graph([WalletRecord("A")], conns)

        self.assertEqual(conns[0].transaction_count, 2)
        self.assertEqual(conns[0].value, Decimal("5"))


if __name__ == "__main__":
    unittest.main()
