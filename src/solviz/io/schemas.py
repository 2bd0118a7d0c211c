from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from solviz.core.models import Graph


def _dec_to_str(x: Decimal) -> str:
    # keep as string for JSON precision safety
    return format(x, "f")


def graph_to_dict(
    g: Graph,
    positions: Optional[Mapping[str, Tuple[float, float]]] = None,
) -> Dict[str, Any]:
    pos = positions or {}
    return {
        "nodes": [
            {
                "id": n.id,
                "label": n.label,
                "type": n.node_type.value,
                "display_type": n.display_type,
                "balance": n.balance,
                "transaction_count": n.transaction_count,
                "is_root": n.is_root,
                "protocol_id": n.protocol_id,
                "protocol_name": n.protocol_name,
                "protocol_category": n.protocol_category,
                "placeholder": n.placeholder,
                "x": round(pos[n.id][0], 3) if n.id in pos else None,
                "y": round(pos[n.id][1], 3) if n.id in pos else None,
            }
            for n in g.nodes.values()
        ],
        "edges": [
            {
                "id": e.id,
                "source": e.source,
                "target": e.target,
                "value": _dec_to_str(e.value),
                "transaction_count": e.transaction_count,
                "thickness": round(e.thickness, 3),
                "last_interaction": e.last_interaction,
                "protocol_category": e.protocol_category,
                "placeholder": e.placeholder,
            }
            for e in g.edges
        ],
    }
