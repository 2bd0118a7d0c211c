import contextlib
import io
import json
import os
import tempfile
import unittest
from unittest import mock

from solviz.cli.main import load_fixture, main

A = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
B = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"


def _fixture(tmp):
    path = os.path.join(tmp, "fixture.json")
    data = {
        A: [
            {
                "signature": f"sig{i}",
                "timestamp": 100 + i,
                "tokenTransfers": [{"fromUserAccount": A, "toUserAccount": B, "tokenAmount": 2, "mint": "M"}],
            }
            for i in range(3)
        ],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)
    return path


def _run(argv):
    out = io.StringIO()
    with mock.patch("sys.argv", ["solviz"] + argv), contextlib.redirect_stdout(out), \
            contextlib.redirect_stderr(io.StringIO()):
        code = main()
    return code, out.getvalue()


class CliTests(unittest.TestCase):
    def test_load_fixture(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            chain = load_fixture(_fixture(tmp))

        self.assertEqual(len(chain.get_transactions(A)), 3)
        self.assertEqual(chain.get_wallet(A).transaction_count, 3)

    def test_end_to_end_with_fixture(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out_dir = os.path.join(tmp, "out")
            history = os.path.join(tmp, "history.json")
            code, stdout = _run([
                "--address", A,
                "--fixture", _fixture(tmp),
                "--out", out_dir,
                "--ticks", "5",
                "--html",
                "--history-file", history,
            ])

            self.assertEqual(code, 0)
            for name in ("graph.json", "summary.md", "index.html"):
                self.assertTrue(os.path.exists(os.path.join(out_dir, name)), name)
            with open(os.path.join(out_dir, "graph.json"), encoding="utf-8") as f:
                graph = json.load(f)
            with open(history, encoding="utf-8") as f:
                self.assertEqual(json.load(f), [A])

        self.assertEqual(len(graph["edges"]), 1)
        self.assertEqual(graph["edges"][0]["transaction_count"], 3)
        self.assertIn("Adapter: StaticChainAdapter (fixture)", stdout)

    def test_invalid_address(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            code, _ = _run(["--address", "nope", "--fixture", _fixture(tmp), "--out", tmp])
        self.assertEqual(code, 2)

    def test_missing_address(self) -> None:
        code, _ = _run([])
        self.assertEqual(code, 2)


if __name__ == "__main__":
    unittest.main()
