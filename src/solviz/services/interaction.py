from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from solviz.config import settings
from solviz.core.enums import InteractionState, NodeType
from solviz.core.models import Graph, GraphEdge, GraphNode
from solviz.services.layout import ForceLayout, Viewport

logger = logging.getLogger(__name__)

EDGE_HIT_TOLERANCE = 3.0

NODE_COLORS: Dict[str, str] = {
    NodeType.UNKNOWN.value: "#9ca3af",
    NodeType.EXCHANGE.value: "#60a5fa",
    NodeType.PROTOCOL.value: "#34d399",
    NodeType.USER.value: "#fbbf24",
    NodeType.CONTRACT.value: "#f87171",
    NodeType.HIGH_ACTIVITY.value: "#a78bfa",
    NodeType.MAIN.value: "#f97316",
}

CATEGORY_COLORS: Dict[str, str] = {
    "dex": "#3b82f6",
    "stableswap": "#06b6d4",
    "lending": "#10b981",
    "staking": "#8b5cf6",
    "nft": "#ec4899",
    "native": "#6b7280",
}

EDGE_COLOR = "#999999"
EDGE_HIGHLIGHT_COLOR = "#ff0000"


@dataclass(frozen=True)
class EdgeStyle:
    stroke: str
    opacity: float
    width: float


@dataclass(frozen=True)
class Tooltip:
    title: str
    balance: str
    transactions: int
    node_type: str
    protocol: Optional[str] = None

    def lines(self) -> List[str]:
        out = [
            self.title,
            f"Balance: {self.balance} SOL",
            f"Transactions: {self.transactions}",
            f"Type: {self.node_type}",
        ]
        if self.protocol:
            out.append(f"Protocol: {self.protocol}")
        return out


def format_sol(lamports: int) -> str:
    sol = (lamports or 0) / settings.LAMPORTS_PER_SOL
    if sol < 0.01:
        return "<0.01"
    return f"{sol:,.2f}"


def node_color(node: GraphNode) -> str:
    if node.is_root:
        return NODE_COLORS[NodeType.MAIN.value]
    return NODE_COLORS.get(node.node_type.value, NODE_COLORS[NodeType.UNKNOWN.value])


def base_edge_color(edge: GraphEdge) -> str:
    return CATEGORY_COLORS.get((edge.protocol_category or "").lower(), EDGE_COLOR)


def tooltip_for(node: GraphNode) -> Tooltip:
    protocol = None
    if node.protocol_name:
        protocol = f"{node.protocol_name} ({node.protocol_category})" if node.protocol_category else node.protocol_name
    return Tooltip(
        title=node.label,
        balance=format_sol(node.balance),
        transactions=node.transaction_count,
        node_type=node.display_type,
        protocol=protocol,
    )


def _segment_distance(px: float, py: float, ax: float, ay: float, bx: float, by: float) -> float:
    dx, dy = bx - ax, by - ay
    seg2 = dx * dx + dy * dy
    if seg2 == 0:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / seg2))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


class InteractionController:
    """
    Pointer state machine over a laid-out graph.

    IDLE <-> HOVERING(id); IDLE/HOVERING -> SELECTED(id) -> IDLE on close;
    SELECTED(id) -> EXPLORING(id) -> IDLE when new data arrives. The
    controller never fetches; explore requests go to ``on_explore``.
    """

    def __init__(
        self,
        graph: Graph,
        layout: ForceLayout,
        viewport: Optional[Viewport] = None,
        on_select: Optional[Callable[[GraphNode], None]] = None,
        on_explore: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.graph = graph
        self.layout = layout
        self.viewport = viewport or Viewport()
        self.on_select = on_select
        self.on_explore = on_explore

        self.state = InteractionState.IDLE
        self.node_id: Optional[str] = None
        self.selected: Optional[GraphNode] = None

    # ---------- hit testing (screen coordinates) ----------

    def hit_node(self, sx: float, sy: float) -> Optional[str]:
        x, y = self.viewport.to_world(sx, sy)
        # drawn last = on top
        for n in reversed(self.layout.nodes):
            if math.hypot(n.x - x, n.y - y) <= n.radius:
                return n.id
        return None

    def hit_edge(self, sx: float, sy: float) -> Optional[GraphEdge]:
        x, y = self.viewport.to_world(sx, sy)
        pos = self.layout.positions()
        best: Optional[GraphEdge] = None
        best_d = float("inf")
        for e in self.graph.edges:
            if e.source not in pos or e.target not in pos:
                continue
            (ax, ay), (bx, by) = pos[e.source], pos[e.target]
            d = _segment_distance(x, y, ax, ay, bx, by)
            if d <= e.thickness / 2 + EDGE_HIT_TOLERANCE and d < best_d:
                best, best_d = e, d
        return best

    # ---------- hover ----------

    @property
    def hovered(self) -> Optional[str]:
        return self.node_id if self.state == InteractionState.HOVERING else None

    def pointer_move(self, sx: float, sy: float) -> Optional[str]:
        if self.state not in (InteractionState.IDLE, InteractionState.HOVERING):
            return None
        hit = self.hit_node(sx, sy)
        if hit is None:
            self.pointer_leave()
        else:
            self.state = InteractionState.HOVERING
            self.node_id = hit
        return hit

    def pointer_leave(self) -> None:
        if self.state == InteractionState.HOVERING:
            self.state = InteractionState.IDLE
            self.node_id = None

    def tooltip(self) -> Optional[Tooltip]:
        hovered = self.hovered
        if hovered is None or hovered not in self.graph.nodes:
            return None
        return tooltip_for(self.graph.nodes[hovered])

    def edge_style(self, edge: GraphEdge) -> EdgeStyle:
        focus = self.hovered
        if focus is None:
            return EdgeStyle(base_edge_color(edge), 0.6, edge.thickness)
        if edge.source == focus or edge.target == focus:
            return EdgeStyle(EDGE_HIGHLIGHT_COLOR, 0.9, edge.thickness + 1)
        return EdgeStyle(base_edge_color(edge), 0.2, edge.thickness)

    def highlighted_edges(self) -> List[GraphEdge]:
        focus = self.hovered
        if focus is None:
            return []
        return self.graph.edges_touching(focus)

    # ---------- selection / explore ----------

    def click(self, sx: float, sy: float) -> Optional[GraphNode]:
        hit = self.hit_node(sx, sy)
        if hit is None:
            return None
        return self.select(hit)

    def select(self, node_id: str) -> Optional[GraphNode]:
        if self.state not in (InteractionState.IDLE, InteractionState.HOVERING):
            return None
        node = self.graph.nodes.get(node_id)
        if node is None:
            return None
        self.state = InteractionState.SELECTED
        self.node_id = node_id
        self.selected = node
        if self.on_select is not None:
            self.on_select(node)
        return node

    def close(self) -> None:
        if self.state == InteractionState.SELECTED:
            self._reset()

    def explore(self, node_id: Optional[str] = None) -> bool:
        target = node_id or self.node_id
        if self.state != InteractionState.SELECTED or not target:
            return False
        self.state = InteractionState.EXPLORING
        self.node_id = target
        self.selected = None
        logger.info("explore requested for %s", target)
        if self.on_explore is not None:
            self.on_explore(target)
        return True

    def data_arrived(self, graph: Graph, layout: ForceLayout) -> None:
        self.graph = graph
        self.layout = layout
        self._reset()

    def _reset(self) -> None:
        self.state = InteractionState.IDLE
        self.node_id = None
        self.selected = None
