import unittest

import requests

from solviz.adapters.cache import ResponseCache
from solviz.adapters.chain.helius_chain_adapter import HeliusChainAdapter, clamp_limit
from solviz.adapters.chain.rate_limiter import SimpleRateLimiter, backoff_delay
from solviz.adapters.chain.static_chain_adapter import StaticChainAdapter
from solviz.adapters.names.helius_name_adapter import HeliusNameAdapter
from solviz.core.dto import TransactionRecord
from solviz.core.errors import DataSourceError

ADDR = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _Response:
    def __init__(self, status_code=200, payload=None) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class _Session:
    def __init__(self, responses) -> None:
        self._responses = list(responses)
        self.requests = []

    def _next(self, method, url, kwargs):
        self.requests.append((method, url, kwargs))
        r = self._responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


def _raw_tx(sig, src="A", dst="B"):
    return {
        "signature": sig,
        "timestamp": 100,
        "tokenTransfers": [{"fromUserAccount": src, "toUserAccount": dst, "tokenAmount": 1, "mint": "M"}],
    }


class ResponseCacheTests(unittest.TestCase):
    def test_get_or_load_caches(self) -> None:
        cache = ResponseCache(max_entries=4, ttl_sec=10)
        calls = []

        for _ in range(3):
            val = cache.get_or_load("k", lambda: calls.append(1) or "v")

        self.assertEqual(val, "v")
        self.assertEqual(len(calls), 1)
        self.assertEqual((cache.hits, cache.misses), (2, 1))

    def test_entries_expire(self) -> None:
        clock = _Clock()
        cache = ResponseCache(max_entries=4, ttl_sec=10, timer=clock)
        cache.set("k", "v")

        clock.now = 5
        self.assertEqual(cache.get("k"), "v")
        clock.now = 11
        self.assertIsNone(cache.get("k"))
        self.assertNotIn("k", cache)

    def test_capacity_is_bounded(self) -> None:
        cache = ResponseCache(max_entries=2, ttl_sec=10)
        for k in "abc":
            cache.set(k, k)

        self.assertEqual(len(cache), 2)

    def test_invalidate_and_clear(self) -> None:
        cache = ResponseCache(max_entries=4, ttl_sec=10)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        self.assertNotIn("a", cache)
        cache.invalidate("missing")
        cache.clear()
        self.assertEqual(len(cache), 0)

    def test_rejects_bad_sizes(self) -> None:
        with self.assertRaises(ValueError):
            ResponseCache(max_entries=0)
        with self.assertRaises(ValueError):
            ResponseCache(ttl_sec=0)


class RateLimiterTests(unittest.TestCase):
    def test_spaces_requests(self) -> None:
        clock = _Clock()
        slept = []

        def sleep(s):
            slept.append(s)
            clock.now += s

        rl = SimpleRateLimiter(4.0, clock=clock, sleep=sleep)
        rl.wait()
        rl.wait()
        clock.now += 1.0
        rl.wait()

        self.assertEqual(slept, [0.25])

    def test_backoff_is_capped(self) -> None:
        for attempt in range(10):
            self.assertLessEqual(backoff_delay(attempt, base=0.5, cap=8.0), 8.0 * 1.3)
        with self.assertRaises(ValueError):
            SimpleRateLimiter(0)


class HeliusChainAdapterTests(unittest.TestCase):
    def _adapter(self, responses, api_key="key"):
        self.backoffs = []
        self.session = _Session(responses)
        return HeliusChainAdapter(
            api_key=api_key,
            base_url="https://api.example/v0/",
            cache=ResponseCache(max_entries=16, ttl_sec=60),
            session=self.session,
            requests_per_sec=1e6,
            backoff=self.backoffs.append,
        )

    def test_get_transactions_parses_and_caches(self) -> None:
        adapter = self._adapter([_Response(200, [_raw_tx("s1"), {"junk": 1}])])

        txs = adapter.get_transactions(ADDR, 20)
        again = adapter.get_transactions(ADDR, 20)

        self.assertEqual([t.signature for t in txs], ["s1"])
        self.assertEqual(again, txs)
        self.assertEqual(len(self.session.requests), 1)
        _, url, kwargs = self.session.requests[0]
        self.assertEqual(url, f"https://api.example/v0/addresses/{ADDR}/transactions")
        self.assertEqual(kwargs["params"], {"limit": 20, "api-key": "key"})

    def test_limit_is_clamped(self) -> None:
        adapter = self._adapter([_Response(200, [])])
        adapter.get_transactions(ADDR, 500)

        self.assertEqual(self.session.requests[0][2]["params"]["limit"], 100)
        self.assertEqual(clamp_limit(0), 50)
        self.assertEqual(clamp_limit(None), 50)

    def test_retries_after_rate_limit(self) -> None:
        adapter = self._adapter([_Response(429), _Response(200, [_raw_tx("s1")])])

        txs = adapter.get_transactions(ADDR)

        self.assertEqual(len(txs), 1)
        self.assertEqual(self.backoffs, [0])

    def test_gives_up_after_retries(self) -> None:
        adapter = self._adapter([
            requests.ConnectionError("down"),
            _Response(500),
            _Response(200, ValueError("bad json")),
        ])

        with self.assertRaises(DataSourceError):
            adapter.get_transactions(ADDR)
        self.assertEqual(self.backoffs, [0, 1, 2])

    def test_client_errors_fail_fast(self) -> None:
        adapter = self._adapter([_Response(401), _Response(200, [])])

        with self.assertRaises(DataSourceError):
            adapter.get_transactions(ADDR)
        self.assertEqual(len(self.session.requests), 1)
        self.assertEqual(self.backoffs, [])

    def test_not_found_is_empty(self) -> None:
        adapter = self._adapter([_Response(404)])
        self.assertEqual(adapter.get_transactions(ADDR), [])

    def test_missing_key(self) -> None:
        adapter = self._adapter([], api_key=None)
        with self.assertRaises(DataSourceError):
            adapter.get_transactions(ADDR)

    def test_get_wallet(self) -> None:
        adapter = self._adapter([
            _Response(200, [_raw_tx("s1")]),
            _Response(200, {"nativeBalance": 42, "tokens": []}),
        ])

        w = adapter.get_wallet(ADDR)

        self.assertEqual(w.address, ADDR)
        self.assertEqual(w.balance, 42)
        self.assertEqual(w.transaction_count, 1)

    def test_get_wallet_without_any_data(self) -> None:
        adapter = self._adapter([_Response(404)])
        self.assertIsNone(adapter.get_wallet(ADDR, transactions=[]))


class HeliusNameAdapterTests(unittest.TestCase):
    def test_names_are_cached_including_misses(self) -> None:
        session = _Session([_Response(200, [{"address": "A", "displayName": "alice.sol"}])])
        adapter = HeliusNameAdapter(api_key="key", base_url="https://api.example/v0", session=session)

        first = adapter.get_names(["A", "B"])
        second = adapter.get_names(["B", "A"])

        self.assertEqual(first, {"A": "alice.sol"})
        self.assertEqual(second, {"A": "alice.sol"})
        self.assertEqual(len(session.requests), 1)
        self.assertEqual(session.requests[0][2]["json"], {"addresses": ["A", "B"]})

    def test_failure_is_not_an_error(self) -> None:
        session = _Session([requests.Timeout("slow")])
        adapter = HeliusNameAdapter(api_key="key", session=session)

        with self.assertLogs("solviz.adapters.names.helius_name_adapter", level="WARNING"):
            self.assertEqual(adapter.get_names(["A"]), {})

    def test_no_key_no_request(self) -> None:
        session = _Session([])
        adapter = HeliusNameAdapter(api_key=None, session=session)

        self.assertEqual(adapter.get_names(["A"]), {})
        self.assertEqual(session.requests, [])


class StaticChainAdapterTests(unittest.TestCase):
    def test_newest_first_and_limited(self) -> None:
        txs = [TransactionRecord(f"s{i}", timestamp=i) for i in range(5)]
        chain = StaticChainAdapter(transactions={"A": txs})

        got = chain.get_transactions("A", limit=2)

        self.assertEqual([t.signature for t in got], ["s4", "s3"])
        self.assertEqual(chain.calls, ["A"])
        self.assertIsNone(chain.get_wallet("A"))

    def test_failing(self) -> None:
        chain = StaticChainAdapter(failing=["A"])
        with self.assertRaises(DataSourceError):
            chain.get_transactions("A")


if __name__ == "__main__":
    unittest.main()
