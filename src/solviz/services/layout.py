"""
Force-directed layout.

``advance`` computes one simulation step from an immutable view of the
current state and returns fresh nodes; ``ForceLayout`` owns the state, the
alpha cooling schedule, drag pinning and tick listeners. Rendering lives
elsewhere and only reads positions.

Forces follow d3-force semantics: link (spring toward a per-link distance),
many-body charge, centering and collision.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from solviz.core.models import Graph, LayoutConfig, SimulationLink, SimulationNode

logger = logging.getLogger(__name__)

TickListener = Callable[["ForceLayout"], None]

_GOLDEN_ANGLE = math.pi * (3 - math.sqrt(5))
_INITIAL_RADIUS = 10.0
_MAX_TREE_DEPTH = 24


def node_radius(
    balance: float,
    transaction_count: int,
    is_root: bool = False,
    has_protocol: bool = False,
    cfg: LayoutConfig = LayoutConfig(),
) -> float:
    """Render and collision radius; non-decreasing in balance and activity."""
    base = math.sqrt(max(balance or 0, 0)) / cfg.radius_balance_divisor + cfg.radius_base
    activity = math.sqrt(max(transaction_count or 0, 1)) / 2
    radius = base + activity
    if is_root:
        radius += cfg.radius_root_bonus
    if has_protocol:
        radius += cfg.radius_protocol_bonus
    return radius


def link_distance(transaction_count: int, cfg: LayoutConfig = LayoutConfig()) -> float:
    return cfg.link_distance_scale / (math.sqrt(max(transaction_count or 0, 1)) + 1) + cfg.link_distance_min


def _jiggle(a: int, b: int = 0, seed: int = 0) -> float:
    # deterministic tiny offset for coincident points
    h = ((a + 1) * 2654435761 + (b + 1) * 40503 + seed * 97) % 1000
    return (h / 1000.0 - 0.5) * 1e-6 or 1e-7


def simulation_from_graph(
    graph: Graph,
    cfg: LayoutConfig = LayoutConfig(),
) -> Tuple[List[SimulationNode], List[SimulationLink]]:
    cx, cy = cfg.width / 2, cfg.height / 2
    nodes: List[SimulationNode] = []
    for i, n in enumerate(graph.nodes.values()):
        # phyllotaxis spiral, same seed layout d3 uses
        r = _INITIAL_RADIUS * math.sqrt(0.5 + i)
        a = i * _GOLDEN_ANGLE
        nodes.append(
            SimulationNode(
                id=n.id,
                x=cx + r * math.cos(a),
                y=cy + r * math.sin(a),
                radius=node_radius(n.balance, n.transaction_count, n.is_root, n.has_protocol, cfg),
                charge=cfg.charge_root if n.is_root else cfg.charge_default,
                is_root=n.is_root,
            )
        )

    ids = {n.id for n in nodes}
    links = [
        SimulationLink(e.source, e.target, link_distance(e.transaction_count, cfg))
        for e in graph.edges
        if e.source in ids and e.target in ids and e.source != e.target
    ]
    return nodes, links


# -------------------------
# Forces (mutate the working copy inside advance)
# -------------------------

def _apply_links(nodes: List[SimulationNode], index: Dict[str, int], links: Sequence[SimulationLink], alpha: float, seed: int = 0) -> None:
    count: Dict[str, int] = defaultdict(int)
    for link in links:
        count[link.source] += 1
        count[link.target] += 1

    for k, link in enumerate(links):
        si, ti = index.get(link.source), index.get(link.target)
        if si is None or ti is None:
            continue
        s, t = nodes[si], nodes[ti]
        if s.pinned and t.pinned:
            continue

        dx = (t.x + t.vx - s.x - s.vx) or _jiggle(k, 1, seed)
        dy = (t.y + t.vy - s.y - s.vy) or _jiggle(k, 2, seed)
        length = math.sqrt(dx * dx + dy * dy)
        strength = 1.0 / min(count[link.source], count[link.target])
        f = (length - link.distance) / length * alpha * strength
        dx, dy = dx * f, dy * f

        bias = count[link.source] / (count[link.source] + count[link.target])
        # pinned endpoints are immovable; the other side takes the full correction
        if s.pinned:
            bias = 1.0
        elif t.pinned:
            bias = 0.0
        t.vx -= dx * bias
        t.vy -= dy * bias
        s.vx += dx * (1 - bias)
        s.vy += dy * (1 - bias)


class _Quad:
    __slots__ = ("x0", "y0", "size", "children", "points", "strength", "cx", "cy")

    def __init__(self, x0: float, y0: float, size: float) -> None:
        self.x0 = x0
        self.y0 = y0
        self.size = size
        self.children: List["_Quad"] = []
        self.points: List[int] = []
        self.strength = 0.0
        self.cx = 0.0
        self.cy = 0.0


def _build_quad(nodes: List[SimulationNode], idx: List[int], x0: float, y0: float, size: float, depth: int) -> _Quad:
    q = _Quad(x0, y0, size)
    if len(idx) <= 1 or depth >= _MAX_TREE_DEPTH:
        q.points = idx
    else:
        half = size / 2
        buckets: List[List[int]] = [[], [], [], []]
        for i in idx:
            n = nodes[i]
            right = n.x >= x0 + half
            below = n.y >= y0 + half
            buckets[(2 if below else 0) + (1 if right else 0)].append(i)
        for b, members in enumerate(buckets):
            if members:
                q.children.append(
                    _build_quad(nodes, members, x0 + half * (b & 1), y0 + half * (b >> 1), half, depth + 1)
                )
        # all points fell in one quadrant at max depth is handled by depth limit

    # centroid weighted by |strength|, aggregate signed strength
    weight = 0.0
    sx = sy = 0.0
    members = q.points if not q.children else None
    if members is not None:
        for i in members:
            n = nodes[i]
            w = abs(n.charge)
            q.strength += n.charge
            weight += w
            sx += n.x * w
            sy += n.y * w
    else:
        for c in q.children:
            w = abs(c.strength)
            q.strength += c.strength
            weight += w
            sx += c.cx * w
            sy += c.cy * w
    if weight > 0:
        q.cx, q.cy = sx / weight, sy / weight
    else:
        q.cx, q.cy = x0 + size / 2, y0 + size / 2
    return q


def _charge_pair(node: SimulationNode, dx: float, dy: float, strength: float, alpha: float, dmin2: float) -> None:
    l2 = dx * dx + dy * dy
    if l2 < dmin2:
        l2 = math.sqrt(dmin2 * l2) if l2 > 0 else dmin2
    w = strength * alpha / l2
    node.vx += dx * w
    node.vy += dy * w


def _apply_charge_direct(nodes: List[SimulationNode], alpha: float, cfg: LayoutConfig) -> None:
    dmin2 = cfg.charge_distance_min ** 2
    for i, n in enumerate(nodes):
        if n.pinned:
            continue
        for j, m in enumerate(nodes):
            if i == j:
                continue
            dx = (m.x - n.x) or _jiggle(i, j, cfg.seed)
            dy = (m.y - n.y) or _jiggle(j, i, cfg.seed)
            _charge_pair(n, dx, dy, m.charge, alpha, dmin2)


def _apply_charge_barnes_hut(nodes: List[SimulationNode], alpha: float, cfg: LayoutConfig) -> None:
    xs = [n.x for n in nodes]
    ys = [n.y for n in nodes]
    x0, y0 = min(xs), min(ys)
    size = max(max(xs) - x0, max(ys) - y0, 1.0) * 1.0001
    root = _build_quad(nodes, list(range(len(nodes))), x0, y0, size, 0)

    dmin2 = cfg.charge_distance_min ** 2
    theta2 = cfg.barnes_hut_theta ** 2

    for i, n in enumerate(nodes):
        if n.pinned:
            continue
        stack = [root]
        while stack:
            q = stack.pop()
            if q.strength == 0:
                continue
            dx = q.cx - n.x
            dy = q.cy - n.y
            l2 = dx * dx + dy * dy
            if q.children and q.size * q.size / theta2 < l2:
                # far enough: treat the cell as one body
                _charge_pair(n, dx, dy, q.strength, alpha, dmin2)
                continue
            if q.children:
                stack.extend(q.children)
                continue
            for j in q.points:
                if j == i:
                    continue
                m = nodes[j]
                ddx = (m.x - n.x) or _jiggle(i, j, cfg.seed)
                ddy = (m.y - n.y) or _jiggle(j, i, cfg.seed)
                _charge_pair(n, ddx, ddy, m.charge, alpha, dmin2)


def _apply_center(nodes: List[SimulationNode], cfg: LayoutConfig) -> None:
    if not nodes or cfg.center_strength <= 0:
        return
    sx = sum(n.x for n in nodes) / len(nodes) - cfg.width / 2
    sy = sum(n.y for n in nodes) / len(nodes) - cfg.height / 2
    sx *= cfg.center_strength
    sy *= cfg.center_strength
    for n in nodes:
        n.x -= sx
        n.y -= sy


def _apply_collision(nodes: List[SimulationNode], cfg: LayoutConfig) -> None:
    if len(nodes) < 2:
        return
    radii = [n.radius + cfg.collision_padding for n in nodes]
    cell = 2 * max(radii)
    px = [n.x + n.vx for n in nodes]
    py = [n.y + n.vy for n in nodes]

    grid: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    for i in range(len(nodes)):
        grid[(int(math.floor(px[i] / cell)), int(math.floor(py[i] / cell)))].append(i)

    for (gx, gy), members in grid.items():
        for ox in (-1, 0, 1):
            for oy in (-1, 0, 1):
                others = grid.get((gx + ox, gy + oy))
                if not others:
                    continue
                for i in members:
                    for j in others:
                        if j <= i:
                            continue
                        _collide(nodes, i, j, px, py, radii, cfg.collision_strength, cfg.seed)


def _collide(
    nodes: List[SimulationNode],
    i: int,
    j: int,
    px: List[float],
    py: List[float],
    radii: List[float],
    strength: float,
    seed: int = 0,
) -> None:
    a, b = nodes[i], nodes[j]
    if a.pinned and b.pinned:
        return
    r = radii[i] + radii[j]
    dx = px[i] - px[j]
    dy = py[i] - py[j]
    l2 = dx * dx + dy * dy
    if l2 >= r * r:
        return
    if dx == 0:
        dx = _jiggle(i, j, seed)
        l2 += dx * dx
    if dy == 0:
        dy = _jiggle(j, i, seed)
        l2 += dy * dy
    length = math.sqrt(l2)
    f = (r - length) / length * strength
    dx, dy = dx * f, dy * f

    ri2, rj2 = radii[i] ** 2, radii[j] ** 2
    share = rj2 / (ri2 + rj2)
    if b.pinned:
        share = 1.0
    elif a.pinned:
        share = 0.0
    a.vx += dx * share
    a.vy += dy * share
    b.vx -= dx * (1 - share)
    b.vy -= dy * (1 - share)


def _integrate(nodes: List[SimulationNode], cfg: LayoutConfig) -> None:
    keep = 1 - cfg.velocity_decay
    for n in nodes:
        if n.pinned:
            n.x, n.y = n.fx, n.fy
            n.vx = n.vy = 0.0
            continue
        n.vx *= keep
        n.vy *= keep
        n.x += n.vx
        n.y += n.vy


def advance(
    nodes: Sequence[SimulationNode],
    links: Sequence[SimulationLink],
    alpha: float,
    cfg: LayoutConfig = LayoutConfig(),
) -> List[SimulationNode]:
    """
    One simulation step. Inputs are left untouched; returns new nodes.
    """
    out = [replace(n) for n in nodes]
    if not out:
        return out
    index = {n.id: i for i, n in enumerate(out)}

    if links:
        _apply_links(out, index, links, alpha, cfg.seed)
    if len(out) > cfg.barnes_hut_threshold:
        _apply_charge_barnes_hut(out, alpha, cfg)
    else:
        _apply_charge_direct(out, alpha, cfg)
    _apply_center(out, cfg)
    _apply_collision(out, cfg)
    _integrate(out, cfg)
    return out


# -------------------------
# Simulation driver
# -------------------------

class ForceLayout:
    """
    Owns simulation nodes for one graph. Content changes mean a new instance.
    """

    def __init__(self, graph: Graph, cfg: LayoutConfig = LayoutConfig()) -> None:
        self.cfg = cfg
        self.nodes, self.links = simulation_from_graph(graph, cfg)
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.ticks = 0
        self._running = bool(self.nodes)
        self._listeners: List[TickListener] = []

    # ---------- state ----------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    @property
    def has_links(self) -> bool:
        return bool(self.links)

    def on_tick(self, listener: TickListener) -> None:
        self._listeners.append(listener)

    def node(self, node_id: str) -> Optional[SimulationNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {n.id: (n.x, n.y) for n in self.nodes}

    # ---------- stepping ----------

    def tick(self) -> bool:
        if not self._running:
            return False
        self.alpha += (self.alpha_target - self.alpha) * self.cfg.alpha_decay
        self.nodes = advance(self.nodes, self.links, self.alpha, self.cfg)
        self.ticks += 1
        for listener in list(self._listeners):
            listener(self)
        if self.alpha < self.cfg.alpha_min:
            self._running = False
            logger.debug("layout settled after %d tick(s)", self.ticks)
        return True

    def run(self, max_ticks: int = 300) -> int:
        done = 0
        while done < max_ticks and self.tick():
            done += 1
        return done

    def stop(self) -> None:
        self._running = False

    def restart(self, alpha: Optional[float] = None) -> None:
        if alpha is not None:
            self.alpha = alpha
        self._running = bool(self.nodes)

    # ---------- drag ----------

    def _set_node(self, node_id: str, **changes) -> bool:
        for i, n in enumerate(self.nodes):
            if n.id == node_id:
                self.nodes[i] = replace(n, **changes)
                return True
        return False

    def drag_start(self, node_id: str, x: Optional[float] = None, y: Optional[float] = None) -> bool:
        n = self.node(node_id)
        if n is None:
            return False
        self.alpha_target = self.cfg.alpha_drag_target
        self.restart()
        px = n.x if x is None else x
        py = n.y if y is None else y
        return self._set_node(node_id, fx=px, fy=py, x=px, y=py, vx=0.0, vy=0.0)

    def drag_to(self, node_id: str, x: float, y: float) -> bool:
        n = self.node(node_id)
        if n is None or not n.pinned:
            return False
        return self._set_node(node_id, fx=x, fy=y)

    def drag_end(self, node_id: str) -> bool:
        self.alpha_target = 0.0
        return self._set_node(node_id, fx=None, fy=None)


@dataclass
class Viewport:
    """
    Screen transform (scale ``k`` then translate). Never touches simulation
    coordinates.
    """

    k: float = 1.0
    tx: float = 0.0
    ty: float = 0.0
    zoom_min: float = LayoutConfig.zoom_min
    zoom_max: float = LayoutConfig.zoom_max

    def to_screen(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.k + self.tx, y * self.k + self.ty

    def to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return (sx - self.tx) / self.k, (sy - self.ty) / self.k

    def zoom(self, factor: float, cx: float = 0.0, cy: float = 0.0) -> None:
        """Zoom around screen point (cx, cy), clamped to the scale extent."""
        if factor <= 0:
            return
        wx, wy = self.to_world(cx, cy)
        self.k = min(self.zoom_max, max(self.zoom_min, self.k * factor))
        self.tx = cx - wx * self.k
        self.ty = cy - wy * self.k

    def pan(self, dx: float, dy: float) -> None:
        self.tx += dx
        self.ty += dy

    def reset(self) -> None:
        self.k, self.tx, self.ty = 1.0, 0.0, 0.0

    def fit(self, points: Iterable[Tuple[float, float]], width: float, height: float, padding: float = 0.1) -> None:
        pts = list(points)
        if not pts:
            self.reset()
            return
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        w = max(max(xs) - min(xs), 1.0)
        h = max(max(ys) - min(ys), 1.0)
        scale = (1 - 2 * padding) * min(width / w, height / h)
        self.k = min(self.zoom_max, max(self.zoom_min, scale))
        self.tx = width / 2 - (min(xs) + w / 2) * self.k
        self.ty = height / 2 - (min(ys) + h / 2) * self.k

    def svg_transform(self) -> str:
        return f"translate({self.tx:.2f},{self.ty:.2f}) scale({self.k:.4f})"
