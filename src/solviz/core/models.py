from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from solviz.config import settings
from solviz.core.enums import NodeType



# Configuration models

@dataclass(frozen=True)
class ClassifierConfig:
    """
    Thresholds for node classification. Heuristic, not derived from data.
    """

    high_activity_connections: int = settings.HIGH_ACTIVITY_CONNECTIONS
    exchange_balance: int = settings.EXCHANGE_BALANCE_LAMPORTS
    user_balance: int = settings.USER_BALANCE_LAMPORTS
    default_balance: int = settings.DEFAULT_NODE_BALANCE
    placeholder_balance: int = settings.PLACEHOLDER_NODE_BALANCE


@dataclass(frozen=True)
class LayoutConfig:

    width: float = settings.CANVAS_WIDTH
    height: float = settings.CANVAS_HEIGHT

    link_distance_scale: float = settings.LINK_DISTANCE_SCALE
    link_distance_min: float = settings.LINK_DISTANCE_MIN
    charge_root: float = settings.CHARGE_ROOT
    charge_default: float = settings.CHARGE_DEFAULT
    charge_distance_min: float = settings.CHARGE_DISTANCE_MIN
    center_strength: float = settings.CENTER_STRENGTH
    collision_padding: float = settings.COLLISION_PADDING
    collision_strength: float = settings.COLLISION_STRENGTH

    radius_balance_divisor: float = settings.RADIUS_BALANCE_DIVISOR
    radius_base: float = settings.RADIUS_BASE
    radius_root_bonus: float = settings.RADIUS_ROOT_BONUS
    radius_protocol_bonus: float = settings.RADIUS_PROTOCOL_BONUS

    alpha_min: float = settings.ALPHA_MIN
    alpha_decay: float = settings.ALPHA_DECAY
    alpha_drag_target: float = settings.ALPHA_DRAG_TARGET
    velocity_decay: float = settings.VELOCITY_DECAY

    barnes_hut_threshold: int = settings.BARNES_HUT_THRESHOLD
    barnes_hut_theta: float = settings.BARNES_HUT_THETA

    zoom_min: float = settings.ZOOM_MIN
    zoom_max: float = settings.ZOOM_MAX
    seed: int = settings.LAYOUT_SEED


@dataclass(frozen=True)
class SessionConfig:

    tx_limit: int = settings.TX_LIMIT_DEFAULT
    min_transactions: int = 1
    max_nodes: int = 0                 # 0 = unlimited
    signature_fallback: bool = False   # display-only pseudo-addresses
    layout_ticks: int = 300
    history_size: int = settings.SEARCH_HISTORY_SIZE



# Aggregation models

@dataclass
class Connection:

    source: str
    target: str

    value: Decimal = Decimal("0")
    transaction_count: int = 0
    last_interaction: int = 0

    protocol_id: Optional[str] = None
    protocol_name: Optional[str] = None
    protocol_category: Optional[str] = None

    # synthesized from a signature, not real addresses
    placeholder: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.target)



# Graph models

@dataclass
class GraphNode:

    id: str
    label: str
    node_type: NodeType = NodeType.UNKNOWN
    balance: int = settings.DEFAULT_NODE_BALANCE
    transaction_count: int = 1
    is_root: bool = False

    protocol_id: Optional[str] = None
    protocol_name: Optional[str] = None
    protocol_category: Optional[str] = None

    # not in the known-wallet set
    placeholder: bool = False

    @property
    def has_protocol(self) -> bool:
        return bool(self.protocol_category)

    @property
    def display_type(self) -> str:
        if self.protocol_category and self.node_type in (NodeType.PROTOCOL, NodeType.CONTRACT):
            return f"{self.node_type.value}:{self.protocol_category.lower()}"
        return self.node_type.value


@dataclass
class GraphEdge:

    source: str
    target: str
    value: Decimal
    transaction_count: int
    last_interaction: int = 0
    protocol_category: Optional[str] = None
    placeholder: bool = False

    @property
    def id(self) -> str:
        return f"{self.source}->{self.target}"

    @property
    def thickness(self) -> float:
        return max(self.transaction_count, 1) ** 0.5 + 1


@dataclass
class Graph:

    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: List[GraphEdge] = field(default_factory=list)

    @property
    def root(self) -> Optional[GraphNode]:
        for n in self.nodes.values():
            if n.is_root:
                return n
        return None

    def edges_touching(self, node_id: str) -> List[GraphEdge]:
        return [e for e in self.edges if e.source == node_id or e.target == node_id]



# Layout models

@dataclass
class SimulationNode:

    id: str
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    # pinned position while dragged
    fx: Optional[float] = None
    fy: Optional[float] = None

    radius: float = settings.RADIUS_BASE
    charge: float = settings.CHARGE_DEFAULT
    is_root: bool = False

    @property
    def pinned(self) -> bool:
        return self.fx is not None and self.fy is not None


@dataclass(frozen=True)
class SimulationLink:

    source: str
    target: str
    distance: float
