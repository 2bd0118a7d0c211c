from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import sys
import time
from typing import Dict, List

from solviz.config import settings
from solviz.core.enums import SessionStatus
from solviz.core.errors import InvalidAddressError, SolvizError
from solviz.core.models import SessionConfig
from solviz.core.validation import short_address
from solviz.services.history import SearchHistory
from solviz.services.session import GraphSession
from solviz.io.output_writer import write_graph_json, write_summary_md, write_graph_html
from solviz.io.parsing import parse_transactions, parse_wallet

from solviz.adapters.cache import ResponseCache
from solviz.adapters.chain.helius_chain_adapter import HeliusChainAdapter
from solviz.adapters.chain.static_chain_adapter import StaticChainAdapter
from solviz.adapters.names.helius_name_adapter import HeliusNameAdapter


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="solviz", description="Solana wallet connection graph")
    p.add_argument("--address", required=False, help="Wallet address to explore")
    p.add_argument("--explore", action="append", default=[], help="Further addresses to expand into the same graph (repeatable)")
    p.add_argument("--limit", type=int, default=settings.TX_LIMIT_DEFAULT, help=f"Transactions per address (max {settings.TX_LIMIT_MAX})")
    p.add_argument("--min-transactions", type=int, default=1, help="Drop connections with fewer transactions")
    p.add_argument("--max-nodes", type=int, default=0, help="Keep the 2x max-nodes busiest connections (0=unlimited)")
    p.add_argument("--ticks", type=int, default=300, help="Layout ticks before writing positions")
    p.add_argument("--signature-fallback", action="store_true", help="Connect account-less transactions through signature placeholders",)
    p.add_argument("--out", default="out", help="Output folder")
    p.add_argument("--html", action="store_true", help="Write a static SVG visualization alongside graph.json",)
    p.add_argument("--fixture", help="JSON file {address: [raw transactions]} served by the static adapter (dev/testing)")
    p.add_argument("--history-file", help="Persist search history to this JSON file")
    p.add_argument("--no-names", action="store_true", help="Skip display name lookup")
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    return p


def load_fixture(path: str) -> StaticChainAdapter:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"fixture {path} must map addresses to transaction lists")

    transactions = {}
    wallets = {}
    for address, raw in data.items():
        txs = parse_transactions(raw)
        transactions[address] = txs
        wallets[address] = parse_wallet(address, None, txs)
    return StaticChainAdapter(wallets=wallets, transactions=transactions)


def _make_progress_reporter():
    start_time = time.time()
    last_print = 0.0
    is_tty = sys.stdout.isatty()

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def _print_line(message: str) -> None:
        if is_tty:
            sys.stdout.write("\r" + message.ljust(88))
            sys.stdout.flush()
        else:
            print(message)

    def _clear_line() -> None:
        if is_tty:
            sys.stdout.write("\r" + (" " * 88) + "\r")
            sys.stdout.flush()

    def progress(event: str, data: dict) -> None:
        nonlocal last_print
        now = time.time()
        if event == "start":
            print(f"[{_ts()}] Exploring {data['address']} • limit {data['limit']} tx")
            return
        if event == "fetch":
            phase = data.get("phase", "data").upper()
            addr = short_address(str(data.get("address", "")))
            _print_line(f"Fetching {phase} for {addr}...")
            last_print = now
            return
        if event == "fetch_done":
            phase = data.get("phase", "data").upper()
            count = data.get("count", 0)
            _print_line(f"Fetched {phase}: {count} record(s)")
            last_print = now
            return
        if event == "built":
            _print_line(f"Graph: {data['nodes']} nodes • {data['edges']} edges")
            last_print = now
            return
        if event == "tick":
            if is_tty and now - last_print < 0.2:
                return
            if not is_tty and data["tick"] % 100 != 0:
                return
            _print_line(f"Layout tick {data['tick']} • alpha {data['alpha']:.3f}")
            last_print = now
            return
        if event == "done":
            _clear_line()
            elapsed = time.time() - start_time
            print(
                f"[{_ts()}] Done in {elapsed:.1f}s • "
                f"{data['nodes']} nodes • {data['edges']} edges"
            )
            return
        if event == "error":
            _clear_line()
            print(f"[{_ts()}] Error: {data.get('message', 'Unknown error')}", file=sys.stderr)

    return progress


def main() -> int:
    args = build_arg_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.address:
        print("Missing --address", file=sys.stderr)
        return 2

    cfg = SessionConfig(
        tx_limit=args.limit,
        min_transactions=args.min_transactions,
        max_nodes=args.max_nodes,
        signature_fallback=args.signature_fallback,
        layout_ticks=args.ticks,
    )
    progress = _make_progress_reporter()

    # Ports
    names = None
    if args.fixture:
        try:
            chain = load_fixture(args.fixture)
        except (OSError, ValueError) as exc:
            progress("error", {"message": f"Cannot load fixture: {exc}"})
            return 2
        adapter_label = "StaticChainAdapter (fixture)"
    else:
        if not settings.HELIUS_API_KEY:
            progress("error", {"message": "Missing HELIUS_API_KEY environment variable"})
            return 2
        cache = ResponseCache()
        chain = HeliusChainAdapter(cache=cache)
        if not args.no_names:
            names = HeliusNameAdapter(cache=cache)
        adapter_label = "HeliusChainAdapter"

    history = SearchHistory.load(args.history_file) if args.history_file else None
    session = GraphSession(chain, names=names, cfg=cfg, history=history, on_progress=progress)
    print(f"Adapter: {adapter_label}")

    progress("start", {"address": args.address, "limit": cfg.tx_limit})
    addresses: List[str] = [args.address] + list(args.explore)
    try:
        for addr in addresses:
            status = session.search(addr)
            if status == SessionStatus.ERROR:
                return 1
    except InvalidAddressError as exc:
        progress("error", {"message": str(exc)})
        return 2
    except SolvizError as exc:
        progress("error", {"message": f"{exc.__class__.__name__}: {exc}"})
        return 1

    session.layout.on_tick(lambda lay: progress("tick", {"tick": lay.ticks, "alpha": lay.alpha}))
    session.settle()

    graph = session.graph
    progress("done", {"nodes": len(graph.nodes), "edges": len(graph.edges)})
    if session.status == SessionStatus.NO_CONNECTIONS:
        print("No connections found between wallets")

    # Outputs
    print("Writing outputs...")
    positions: Dict = session.layout.positions()
    graph_path = write_graph_json(graph, args.out, positions)
    summary_path = write_summary_md(graph, args.out, seed_address=session.active_address)
    html_path = None
    if args.html:
        html_path = write_graph_html(graph, session.layout, args.out)

    print(f"Wrote: {graph_path}")
    print(f"Wrote: {summary_path}")
    if html_path:
        print(f"Wrote: {html_path}")

    if args.history_file:
        session.history.save(args.history_file)
        print(f"Recent searches: {', '.join(short_address(a) for a in session.history.items())}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
