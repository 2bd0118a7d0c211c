from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from solviz.core.dto import TransactionRecord, WalletRecord
from solviz.core.enums import SessionStatus
from solviz.core.errors import DataSourceError
from solviz.core.models import ClassifierConfig, Graph, GraphNode, LayoutConfig, SessionConfig
from solviz.core.validation import is_valid_address, validate_address
from solviz.ports.chain_data_port import ChainDataPort
from solviz.ports.name_port import NameResolverPort
from solviz.services.aggregator import ConnectionAggregator, filter_connections
from solviz.services.graph_builder import build_graph
from solviz.services.history import SearchHistory
from solviz.services.interaction import InteractionController
from solviz.services.layout import ForceLayout, Viewport

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str, dict], None]


@dataclass(frozen=True)
class FetchTicket:
    address: str
    generation: int


@dataclass
class FetchResult:
    wallet: Optional[WalletRecord]
    transactions: List[TransactionRecord] = field(default_factory=list)


def _noop(event: str, data: dict) -> None:
    return None


class GraphSession:
    """
    Drives the pipeline for the address under exploration.

    Fetches are keyed by (address, generation). A result is committed only if
    its ticket is still the newest one and its address is still the active
    search, so a slow response for an old search can never overwrite newer
    state. Connections and wallets accumulate across searches until clear().
    """

    def __init__(
        self,
        chain: ChainDataPort,
        names: Optional[NameResolverPort] = None,
        cfg: SessionConfig = SessionConfig(),
        layout_cfg: LayoutConfig = LayoutConfig(),
        classifier_cfg: ClassifierConfig = ClassifierConfig(),
        history: Optional[SearchHistory] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> None:
        self.chain = chain
        self.name_resolver = names
        self.cfg = cfg
        self.layout_cfg = layout_cfg
        self.classifier_cfg = classifier_cfg
        self.history = history if history is not None else SearchHistory(cfg.history_size)
        self._progress = on_progress or _noop

        self.aggregator = ConnectionAggregator(signature_fallback=cfg.signature_fallback)
        self.wallets: Dict[str, WalletRecord] = {}
        self.names: Dict[str, str] = {}

        self.generation = 0
        self.active_address: Optional[str] = None
        self.status = SessionStatus.EMPTY
        self.error: Optional[str] = None
        self.selected: Optional[GraphNode] = None

        self.graph = Graph(nodes={}, edges=[])
        self.layout = ForceLayout(self.graph, layout_cfg)
        self.viewport = Viewport(zoom_min=layout_cfg.zoom_min, zoom_max=layout_cfg.zoom_max)
        self.controller = InteractionController(
            self.graph,
            self.layout,
            self.viewport,
            on_select=self._on_select,
            on_explore=self.explore,
        )

    # ---------- pipeline ----------

    def begin(self, address: str) -> FetchTicket:
        addr = validate_address(address)
        self.layout.stop()
        self.generation += 1
        self.active_address = addr
        self.status = SessionStatus.LOADING
        self.error = None
        self.selected = None
        return FetchTicket(address=addr, generation=self.generation)

    def is_current(self, ticket: FetchTicket) -> bool:
        return ticket.generation == self.generation and ticket.address == self.active_address

    def fetch(self, ticket: FetchTicket) -> FetchResult:
        self._progress("fetch", {"address": ticket.address, "phase": "transactions"})
        txs = self.chain.get_transactions(ticket.address, self.cfg.tx_limit)
        self._progress("fetch_done", {"phase": "transactions", "count": len(txs)})

        self._progress("fetch", {"address": ticket.address, "phase": "wallet"})
        wallet = self.chain.get_wallet(ticket.address, txs)
        return FetchResult(wallet=wallet, transactions=list(txs))

    def commit(self, ticket: FetchTicket, result: FetchResult) -> bool:
        if not self.is_current(ticket):
            logger.info("discarding stale result for %s (generation %d)", ticket.address, ticket.generation)
            return False

        if result.wallet is not None:
            self.wallets[result.wallet.address] = result.wallet
        new = self.aggregator.add_batch(result.transactions)
        logger.debug("%s: %d new connection(s)", ticket.address, len(new))

        self.history.add(ticket.address)
        self.rebuild()
        return True

    def fail(self, ticket: FetchTicket, err: Exception) -> bool:
        if not self.is_current(ticket):
            return False
        self.status = SessionStatus.ERROR
        self.error = str(err)
        logger.warning("fetch failed for %s: %s", ticket.address, err)
        self.controller.data_arrived(self.graph, self.layout)
        self._progress("error", {"message": self.error})
        return True

    def search(self, address: str) -> SessionStatus:
        """
        Validate, fetch and commit synchronously. InvalidAddressError is
        raised before anything runs; upstream failures become ERROR status.
        """
        ticket = self.begin(address)
        try:
            result = self.fetch(ticket)
        except DataSourceError as e:
            self.fail(ticket, e)
            return self.status
        self.commit(ticket, result)
        return self.status

    def explore(self, node_id: str) -> SessionStatus:
        # placeholder nodes may not be real addresses
        if not is_valid_address(node_id):
            logger.info("not exploring %s: not a valid address", node_id)
            self.controller.data_arrived(self.graph, self.layout)
            return self.status
        return self.search(node_id)

    def refresh(self) -> SessionStatus:
        if not self.active_address:
            return self.status
        return self.search(self.active_address)

    def clear(self) -> None:
        self.layout.stop()
        self.generation += 1
        self.active_address = None
        self.aggregator.clear()
        self.wallets.clear()
        self.status = SessionStatus.EMPTY
        self.error = None
        self.selected = None
        self._install(Graph(nodes={}, edges=[]))

    # ---------- graph ----------

    def rebuild(self) -> Graph:
        connections = filter_connections(
            self.aggregator.connections(),
            min_transactions=self.cfg.min_transactions,
            max_nodes=self.cfg.max_nodes,
        )

        active = {c.source for c in connections} | {c.target for c in connections}
        wallets = [
            w for a, w in self.wallets.items()
            if a in active or a == self.active_address or not self._filtering
        ]
        if self.cfg.max_nodes > 0:
            wallets = wallets[: self.cfg.max_nodes]

        self._resolve_names(active | set(self.wallets))

        graph = build_graph(
            wallets,
            connections,
            root_address=self.active_address,
            names=self.names,
            cfg=self.classifier_cfg,
        )
        self._install(graph)

        if graph.edges:
            self.status = SessionStatus.READY
        else:
            self.status = SessionStatus.NO_CONNECTIONS
        self._progress("built", {"nodes": len(graph.nodes), "edges": len(graph.edges)})
        return graph

    def settle(self, max_ticks: Optional[int] = None) -> int:
        return self.layout.run(self.cfg.layout_ticks if max_ticks is None else max_ticks)

    @property
    def _filtering(self) -> bool:
        return self.cfg.min_transactions > 1 or self.cfg.max_nodes > 0

    def _install(self, graph: Graph) -> None:
        self.layout.stop()
        self.graph = graph
        self.layout = ForceLayout(graph, self.layout_cfg)
        self.controller.data_arrived(graph, self.layout)

    def _resolve_names(self, addresses) -> None:
        if self.name_resolver is None:
            return
        missing = [a for a in addresses if a not in self.names]
        if not missing:
            return
        found = self.name_resolver.get_names(missing)
        for a in missing:
            # "" remembers a miss; labels fall back to the short address
            self.names[a] = found.get(a, "")

    def _on_select(self, node: GraphNode) -> None:
        self.selected = node
