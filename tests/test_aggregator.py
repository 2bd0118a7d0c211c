import unittest
from decimal import Decimal

from solviz.core.dto import NativeTransfer, ProtocolInfo, TokenTransfer, TransactionRecord
from solviz.core.models import Connection
from solviz.services.aggregator import (
    ConnectionAggregator,
    aggregate,
    filter_connections,
    merge_connections,
)


def _token_tx(sig, src, dst, amount, ts=0, mint="X", accounts=None, natives=None, protocol=None):
    return TransactionRecord(
        signature=sig,
        timestamp=ts,
        token_transfers=[TokenTransfer(src, dst, Decimal(str(amount)), mint)],
        native_transfers=natives or [],
        accounts=accounts or [],
        protocol=protocol,
    )


def _as_tuples(conns):
    return sorted((c.source, c.target, c.value, c.transaction_count, c.last_interaction) for c in conns)


class AggregateTests(unittest.TestCase):
    def test_token_transfers_sum_into_one_connection(self) -> None:
        txs = [
            _token_tx("s1", "A", "B", 100),
            _token_tx("s2", "A", "B", 50),
        ]

        conns = aggregate(txs)

        self.assertEqual(len(conns), 1)
        c = conns[0]
        self.assertEqual((c.source, c.target), ("A", "B"))
        self.assertEqual(c.value, Decimal("150"))
        self.assertEqual(c.transaction_count, 2)

    def test_account_co_occurrence_fallback(self) -> None:
        txs = [TransactionRecord(signature="s1", accounts=["A", "B", "C"])]

        conns = aggregate(txs)

        self.assertEqual(
            _as_tuples(conns),
            [("A", "B", Decimal("0"), 1, 0), ("A", "C", Decimal("0"), 1, 0)],
        )

    def test_co_occurrence_caps_targets_at_four(self) -> None:
        txs = [TransactionRecord(signature="s1", accounts=["A", "B", "C", "D", "E", "F", "G"])]

        conns = aggregate(txs)

        self.assertEqual(sorted(c.target for c in conns), ["B", "C", "D", "E"])
        self.assertTrue(all(c.source == "A" for c in conns))

    def test_empty_input_yields_nothing(self) -> None:
        self.assertEqual(aggregate([]), [])
        self.assertEqual(aggregate(None), [])

    def test_is_deterministic(self) -> None:
        txs = [
            _token_tx("s1", "A", "B", 1, ts=10),
            _token_tx("s2", "B", "C", 2, ts=20),
            _token_tx("s3", "A", "B", 3, ts=5),
        ]

        self.assertEqual(_as_tuples(aggregate(txs)), _as_tuples(aggregate(txs)))

    def test_no_self_loops(self) -> None:
        txs = [
            _token_tx("s1", "A", "A", 5),
            _token_tx("s2", "A", "B", 1),
            TransactionRecord(signature="s3", accounts=["C", "C", "D"]),
        ]

        for c in aggregate(txs):
            self.assertNotEqual(c.source, c.target)

    def test_token_strategy_wins_over_other_sources(self) -> None:
        txs = [
            _token_tx(
                "s1", "A", "B", 10,
                accounts=["A", "B", "Z"],
                natives=[NativeTransfer("A", "Y", Decimal("7"))],
            ),
            _token_tx("s2", "A", "B", 5, accounts=["A", "W"]),
        ]

        conns = aggregate(txs)

        self.assertEqual([(c.source, c.target) for c in conns], [("A", "B")])
        self.assertEqual(conns[0].value, Decimal("15"))

    def test_native_transfers_used_when_no_token_transfers(self) -> None:
        txs = [
            TransactionRecord(
                signature="s1",
                native_transfers=[NativeTransfer("A", "B", Decimal("1000"))],
                accounts=["A", "B", "C"],
            ),
        ]

        conns = aggregate(txs)

        self.assertEqual([(c.source, c.target, c.value) for c in conns], [("A", "B", Decimal("1000"))])

    def test_direction_is_preserved(self) -> None:
        txs = [
            _token_tx("s1", "A", "B", 1),
            _token_tx("s2", "B", "A", 2),
        ]

        conns = {c.key: c for c in aggregate(txs)}

        self.assertEqual(set(conns), {("A", "B"), ("B", "A")})
        self.assertEqual(conns[("B", "A")].value, Decimal("2"))

    def test_last_interaction_is_max_timestamp(self) -> None:
        txs = [
            _token_tx("s1", "A", "B", 1, ts=300),
            _token_tx("s2", "A", "B", 1, ts=100),
        ]

        self.assertEqual(aggregate(txs)[0].last_interaction, 300)

    def test_first_protocol_tag_wins(self) -> None:
        jup = ProtocolInfo("jupiter", "Jupiter Aggregator", "dex")
        sol = ProtocolInfo("solend", "Solend", "lending")
        txs = [
            _token_tx("s1", "A", "B", 1),
            _token_tx("s2", "A", "B", 1, protocol=jup),
            _token_tx("s3", "A", "B", 1, protocol=sol),
        ]

        c = aggregate(txs)[0]

        self.assertEqual(c.protocol_id, "jupiter")
        self.assertEqual(c.protocol_category, "dex")

    def test_accountless_transactions_skipped_without_signature_fallback(self) -> None:
        txs = [TransactionRecord(signature="5VERYlongSignatureValue", accounts=["A"])]

        self.assertEqual(aggregate(txs), [])

    def test_signature_fallback_creates_placeholder_connection(self) -> None:
        sig = "abcdefgh12345678rest"
        txs = [TransactionRecord(signature=sig)]

        conns = aggregate(txs, signature_fallback=True)

        self.assertEqual(len(conns), 1)
        self.assertEqual((conns[0].source, conns[0].target), ("abcdefgh", "12345678"))
        self.assertTrue(conns[0].placeholder)


class MergeTests(unittest.TestCase):
    def test_merge_is_additive(self) -> None:
        batch1 = aggregate([_token_tx("s1", "A", "B", 10, ts=5)])
        batch2 = aggregate([
            _token_tx("s2", "A", "B", 4, ts=3),
            _token_tx("s3", "A", "B", 1, ts=9),
            _token_tx("s4", "B", "C", 1),
        ])

        merged = merge_connections({}, batch1)
        after1 = merged[("A", "B")].value
        merge_connections(merged, batch2)

        ab = merged[("A", "B")]
        self.assertGreaterEqual(ab.value, after1)
        self.assertEqual(ab.value, Decimal("15"))
        self.assertEqual(ab.transaction_count, 3)
        self.assertEqual(ab.last_interaction, 9)
        self.assertIn(("B", "C"), merged)

    def test_negative_amounts_never_shrink_a_connection(self) -> None:
        agg = ConnectionAggregator()
        agg.add_batch([_token_tx("s1", "A", "B", 10)])
        before = agg.get("A", "B").value

        agg.add_batch([_token_tx("s2", "A", "B", -25), _token_tx("s3", "A", "B", 1)])

        ab = agg.get("A", "B")
        self.assertGreaterEqual(ab.value, before)
        self.assertEqual(ab.value, Decimal("11"))
        self.assertEqual(ab.transaction_count, 2)

    def test_merge_does_not_alias_inputs(self) -> None:
        batch = [Connection("A", "B", Decimal("1"), 1)]
        merged = merge_connections({}, batch)
        merge_connections(merged, [Connection("A", "B", Decimal("2"), 1)])

        self.assertEqual(batch[0].value, Decimal("1"))
        self.assertEqual(batch[0].transaction_count, 1)


class FilterTests(unittest.TestCase):
    def test_min_transactions(self) -> None:
        conns = [
            Connection("A", "B", transaction_count=1),
            Connection("A", "C", transaction_count=3),
        ]

        kept = filter_connections(conns, min_transactions=2)

        self.assertEqual([c.target for c in kept], ["C"])

    def test_max_nodes_keeps_busiest_pairs(self) -> None:
        conns = [Connection("A", t, transaction_count=n) for t, n in zip("BCDEF", [1, 5, 2, 4, 3])]

        kept = filter_connections(conns, max_nodes=1)

        self.assertEqual([c.target for c in kept], ["C", "E"])


class ConnectionAggregatorTests(unittest.TestCase):
    def test_refetch_does_not_double_count(self) -> None:
        agg = ConnectionAggregator()
        first = [_token_tx("s1", "A", "B", 10), _token_tx("s2", "A", "B", 5)]

        agg.add_batch(first)
        agg.add_batch(first + [_token_tx("s3", "A", "B", 1)])

        c = agg.get("A", "B")
        self.assertEqual(c.transaction_count, 3)
        self.assertEqual(c.value, Decimal("16"))
        self.assertEqual(agg.processed_count, 3)

    def test_clear(self) -> None:
        agg = ConnectionAggregator()
        agg.add_batch([_token_tx("s1", "A", "B", 10)])

        agg.clear()

        self.assertEqual(agg.connections(), [])
        self.assertEqual(agg.processed_count, 0)


if __name__ == "__main__":
    unittest.main()
