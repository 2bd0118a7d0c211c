from __future__ import annotations

import json
import logging
from decimal import Decimal
from html import escape
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from solviz.core.models import Graph
from solviz.core.validation import short_address
from solviz.io.schemas import graph_to_dict
from solviz.services.interaction import (
    InteractionController,
    base_edge_color,
    node_color,
    tooltip_for,
)
from solviz.services.layout import ForceLayout, Viewport

logger = logging.getLogger(__name__)

NO_CONNECTIONS_TEXT = "No connections found between wallets"
RENDER_ERROR_TEXT = "Error rendering visualization"


def write_graph_json(
    graph: Graph,
    out_dir: str,
    positions: Optional[Dict[str, Tuple[float, float]]] = None,
    filename: str = "graph.json",
) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(graph_to_dict(graph, positions), f, indent=2)

    return str(out_path)


def write_summary_md(
    graph: Graph,
    out_dir: str,
    filename: str = "summary.md",
    seed_address: Optional[str] = None,
) -> str:
    """
    Short human summary of the explored neighbourhood.
    """
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    seed = seed_address or (graph.root.id if graph.root else "")

    def label(addr: str) -> str:
        n = graph.nodes.get(addr)
        return n.label if n else short_address(addr)

    inflow = [e for e in graph.edges if seed and e.target == seed]
    outflow = [e for e in graph.edges if seed and e.source == seed]

    def top_by_count(edges, n=10):
        return sorted(edges, key=lambda e: (e.transaction_count, e.value), reverse=True)[:n]

    type_counts: Dict[str, int] = {}
    for n in graph.nodes.values():
        type_counts[n.display_type] = type_counts.get(n.display_type, 0) + 1

    lines: List[str] = []
    lines.append("# Connection Summary\n")
    lines.append(f"- Nodes: **{len(graph.nodes)}**\n")
    lines.append(f"- Edges: **{len(graph.edges)}**\n")
    if seed:
        lines.append(f"- Root: **{seed}**\n")
    placeholders = sum(1 for e in graph.edges if e.placeholder)
    if placeholders:
        lines.append(f"- Placeholder edges (display only): **{placeholders}**\n")
    lines.append("\n")

    if not graph.edges:
        lines.append(f"_{NO_CONNECTIONS_TEXT}._\n\n")

    lines.append("## Top Counterparties (inbound)\n\n")
    if not inflow:
        lines.append("_No inbound connections._\n\n")
    else:
        for e in top_by_count(inflow):
            lines.append(f"- **{e.transaction_count} tx** | {format(e.value, 'f')} | {label(e.source)}\n")
        lines.append("\n")

    lines.append("## Top Counterparties (outbound)\n\n")
    if not outflow:
        lines.append("_No outbound connections._\n\n")
    else:
        for e in top_by_count(outflow):
            lines.append(f"- **{e.transaction_count} tx** | {format(e.value, 'f')} | {label(e.target)}\n")
        lines.append("\n")

    lines.append("## Node Types\n\n")
    for t, count in sorted(type_counts.items()):
        lines.append(f"- **{t}**: {count}\n")
    lines.append("\n")

    total_value = sum((e.value for e in graph.edges), Decimal("0"))
    lines.append("## Notes\n\n")
    lines.append(f"- Total aggregated value across edges: {format(total_value, 'f')}\n")
    lines.append("- Values mix token ui amounts and lamports depending on the aggregation strategy used.\n")
    lines.append("- Classification thresholds are heuristics.\n")

    with out_path.open("w", encoding="utf-8") as f:
        f.writelines(lines)

    return str(out_path)


def _text(x: float, y: float, body: str, fill: str = "#e6e8ef", size: int = 14) -> str:
    return (
        f'<text x="{x:.1f}" y="{y:.1f}" text-anchor="middle" fill="{fill}" '
        f'font-size="{size}">{escape(body)}</text>'
    )


def _render(
    graph: Graph,
    layout: ForceLayout,
    width: float,
    height: float,
    viewport: Viewport,
    controller: Optional[InteractionController],
) -> str:
    parts: List[str] = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
    ]
    if not graph.nodes:
        parts.append("</svg>")
        return "".join(parts)

    pos = layout.positions()
    radius = {n.id: n.radius for n in layout.nodes}

    parts.append(f'<g transform="{viewport.svg_transform()}">')
    parts.append('<g class="edges">')
    for e in graph.edges:
        (x1, y1), (x2, y2) = pos[e.source], pos[e.target]
        if controller is not None:
            style = controller.edge_style(e)
            stroke, opacity, width_px = style.stroke, style.opacity, style.width
        else:
            stroke, opacity, width_px = base_edge_color(e), 0.6, e.thickness
        dash = ' stroke-dasharray="4 3"' if e.placeholder else ""
        parts.append(
            f'<line x1="{x1:.2f}" y1="{y1:.2f}" x2="{x2:.2f}" y2="{y2:.2f}" '
            f'stroke="{stroke}" stroke-opacity="{opacity}" stroke-width="{width_px:.2f}"{dash}>'
            f"<title>{e.transaction_count} tx | {escape(format(e.value, 'f'))}</title></line>"
        )
    parts.append("</g>")

    parts.append('<g class="nodes">')
    for n in graph.nodes.values():
        x, y = pos[n.id]
        r = radius[n.id]
        stroke = ' stroke="#000" stroke-width="2"' if n.is_root else ""
        tip = escape("\n".join(tooltip_for(n).lines()))
        parts.append(
            f'<g transform="translate({x:.2f},{y:.2f})">'
            f'<circle r="{r:.2f}" fill="{node_color(n)}"{stroke}><title>{tip}</title></circle>'
            f'<text dx="{r + 2:.1f}" dy="4" font-size="{12 if n.is_root else 10}" '
            f'font-weight="{"bold" if n.is_root else "normal"}" fill="#e6e8ef" '
            f'pointer-events="none">{escape(n.label)}</text></g>'
        )
    parts.append("</g></g>")

    if not graph.edges:
        parts.append(_text(width / 2, 24, NO_CONNECTIONS_TEXT, fill="#9aa3b2"))

    parts.append("</svg>")
    return "".join(parts)


def render_graph_svg(
    graph: Graph,
    layout: ForceLayout,
    width: float = 600,
    height: float = 400,
    viewport: Optional[Viewport] = None,
    controller: Optional[InteractionController] = None,
) -> str:
    """
    Static SVG of the current layout. Any failure while rendering yields an
    error placeholder instead of propagating to the host.
    """
    try:
        return _render(graph, layout, width, height, viewport or Viewport(), controller)
    except Exception:
        logger.exception("rendering failed")
        return (
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}">'
            + _text(width / 2, height / 2, RENDER_ERROR_TEXT, fill="red")
            + "</svg>"
        )


def write_graph_html(
    graph: Graph,
    layout: ForceLayout,
    out_dir: str,
    filename: str = "index.html",
    width: float = 900,
    height: float = 640,
    title: str = "Wallet Connections",
) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename

    viewport = Viewport()
    viewport.fit(layout.positions().values(), width, height)
    svg = render_graph_svg(graph, layout, width, height, viewport)

    root = graph.root
    subtitle = f"Root: {root.id}" if root else "Empty graph"

    html = f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{escape(title)}</title>
  <style>
    body {{
      margin: 0;
      font-family: "SF Mono", "Menlo", "Consolas", monospace;
      background: #0f1115;
      color: #e6e8ef;
    }}
    header {{
      padding: 16px 20px;
      border-bottom: 1px solid #23283a;
      background: #151824;
    }}
    header h1 {{ margin: 0; font-size: 18px; }}
    header p {{ margin: 6px 0 0 0; font-size: 12px; color: #9aa3b2; }}
    #graph {{ padding: 12px; background: #0b0d12; }}
  </style>
</head>
<body>
  <header>
    <h1>{escape(title)}</h1>
    <p>{escape(subtitle)} &bull; Nodes: {len(graph.nodes)} &bull; Edges: {len(graph.edges)}</p>
  </header>
  <div id="graph">{svg}</div>
</body>
</html>
"""

    with out_path.open("w", encoding="utf-8") as f:
        f.write(html)

    return str(out_path)
