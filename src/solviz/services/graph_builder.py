from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Set

from solviz.core.dto import WalletRecord
from solviz.core.enums import NodeType, ProtocolCategory
from solviz.core.models import ClassifierConfig, Connection, Graph, GraphEdge, GraphNode
from solviz.core.validation import short_address
from solviz.data.protocols import get_protocol_info


def category_node_type(category: str) -> NodeType:
    if (category or "").lower() == ProtocolCategory.NATIVE.value:
        return NodeType.CONTRACT
    return NodeType.PROTOCOL


def classify_wallet(
    wallet: WalletRecord,
    connection_count: int,
    cfg: ClassifierConfig = ClassifierConfig(),
) -> NodeType:
    """
    First matching rule wins: protocol tag, explicit type, connection count,
    balance, unknown.
    """
    if wallet.protocol_category:
        return category_node_type(wallet.protocol_category)

    explicit = NodeType.parse(wallet.type)
    if explicit is not None and explicit != NodeType.UNKNOWN:
        return explicit

    if connection_count > cfg.high_activity_connections:
        return NodeType.HIGH_ACTIVITY

    balance = wallet.balance or 0
    if balance > cfg.exchange_balance:
        return NodeType.EXCHANGE
    if balance > cfg.user_balance:
        return NodeType.USER

    return NodeType.UNKNOWN


def select_root(wallets: List[WalletRecord]) -> Optional[str]:
    best: Optional[WalletRecord] = None
    for w in wallets:
        # strict ">" keeps the first of equal counts
        if best is None or (w.transaction_count or 0) > (best.transaction_count or 0):
            best = w
    return best.address if best else None


def _label(address: str, label: Optional[str], names: Mapping[str, str]) -> str:
    return names.get(address) or label or short_address(address)


def build_graph(
    wallets: Iterable[WalletRecord],
    connections: Iterable[Connection],
    root_address: Optional[str] = None,
    names: Optional[Mapping[str, str]] = None,
    cfg: ClassifierConfig = ClassifierConfig(),
) -> Graph:
    """
    Turn known wallets plus aggregated connections into a renderable graph.

    Endpoints of connections that are not known wallets become placeholder
    nodes, so every edge resolves. The root is the wallet with the highest
    transaction count unless ``root_address`` names a node of the graph.
    Inputs are not mutated.
    """
    wallet_list: List[WalletRecord] = []
    seen: Set[str] = set()
    for w in wallets or []:
        if w is None or not w.address or w.address in seen:
            continue
        seen.add(w.address)
        wallet_list.append(w)

    conn_list = [c for c in connections or [] if c is not None and c.source and c.target and c.source != c.target]
    name_map = names or {}

    # distinct connections per address
    degree: Dict[str, int] = defaultdict(int)
    activity: Dict[str, int] = defaultdict(int)
    for c in conn_list:
        degree[c.source] += 1
        degree[c.target] += 1
        activity[c.source] += c.transaction_count
        activity[c.target] += c.transaction_count

    graph = Graph(nodes={}, edges=[])

    for w in wallet_list:
        graph.nodes[w.address] = GraphNode(
            id=w.address,
            label=_label(w.address, w.label, name_map),
            node_type=classify_wallet(w, degree[w.address], cfg),
            balance=w.balance or cfg.default_balance,
            transaction_count=w.transaction_count or 1,
            protocol_id=w.protocol_id,
            protocol_name=w.protocol_name,
            protocol_category=w.protocol_category,
        )

    for c in conn_list:
        for addr in (c.source, c.target):
            if addr not in graph.nodes:
                graph.nodes[addr] = _placeholder_node(addr, c, activity[addr], name_map, cfg)

    for c in conn_list:
        graph.edges.append(
            GraphEdge(
                source=c.source,
                target=c.target,
                value=c.value,
                transaction_count=c.transaction_count,
                last_interaction=c.last_interaction,
                protocol_category=c.protocol_category,
                placeholder=c.placeholder,
            )
        )

    root = root_address if root_address in graph.nodes else select_root(wallet_list)
    if root is None and graph.nodes:
        # no known wallets: most active synthesized node
        root = max(graph.nodes.values(), key=lambda n: n.transaction_count).id
    if root in graph.nodes:
        graph.nodes[root].is_root = True

    return graph


def _placeholder_node(
    address: str,
    conn: Connection,
    activity: int,
    names: Mapping[str, str],
    cfg: ClassifierConfig,
) -> GraphNode:
    # the address may itself be a known program
    info = get_protocol_info(address)
    if info is not None:
        pid, pname, pcat = info.protocol_id, info.name, info.category
    else:
        pid, pname, pcat = conn.protocol_id, conn.protocol_name, conn.protocol_category

    return GraphNode(
        id=address,
        label=_label(address, info.name if info else None, names),
        node_type=category_node_type(pcat) if pcat else NodeType.UNKNOWN,
        balance=cfg.placeholder_balance,
        transaction_count=max(activity, 1),
        protocol_id=pid,
        protocol_name=pname,
        protocol_category=pcat,
        placeholder=True,
    )
