"""
Zone Graph Operations
=====================

Pure functions over ``ZoneGraph`` values.

Key Design Principles:
1. Input graphs are NEVER modified - every operation returns a new graph
2. No referential integrity: edges may name zones the graph does not hold
3. No failure modes - degenerate input degrades to a no-op
4. Time is sampled once per call (``now``) and threaded through
"""

from datetime import datetime, timezone
import math
from typing import Optional

import networkx as nx

from retrace.core.schema import (
    ENTRY_ZONE_ID,
    GraphMetadata,
    HomeSize,
    KinematicSignature,
    Zone,
    ZoneEdge,
    ZoneGraph,
    ZoneTransition,
)


HOME_SIZE_THRESHOLDS: tuple[tuple[int, HomeSize], ...] = (
    (5, HomeSize.SMALL),
    (15, HomeSize.MEDIUM),
)
"""
(exclusive upper zone count, size) pairs checked in order.
Anything at or above the last bound is LARGE.
"""

EDGE_REINFORCEMENT_RATE = 0.1
"""Share of a repeated observation's weight added to the existing edge."""


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def create_empty_graph(now: Optional[datetime] = None) -> ZoneGraph:
    """
    Create a fresh graph with no zones or edges.

    A graph is initialized once per home; zones are added incrementally.
    """
    now = _now(now)
    return ZoneGraph(
        graph_id=f"graph_{int(now.timestamp() * 1000)}",
        created_time=now,
        last_updated_time=now,
        metadata=GraphMetadata(
            version_id=1,
            estimated_home_size=HomeSize.SMALL,
            zone_count=0,
        ),
    )


def add_zone(graph: ZoneGraph, zone: Zone, now: Optional[datetime] = None) -> ZoneGraph:
    """
    Add a zone unless one with the same id is already present.

    Parameters
    ----------
    graph : ZoneGraph
        Graph to extend (left unchanged)
    zone : Zone
        Zone to append
    now : datetime, optional
        Update timestamp. Defaults to now (UTC).

    Returns
    -------
    ZoneGraph
        The input graph itself for a duplicate id, otherwise a new graph
    """
    if get_zone(graph, zone.zone_id) is not None:
        return graph

    zones = graph.zones + (zone,)
    return graph.model_copy(update={
        "zones": zones,
        "metadata": graph.metadata.model_copy(update={
            "zone_count": len(zones),
            "estimated_home_size": _home_size_for(len(zones)),
        }),
        "last_updated_time": _now(now),
    })


def observe_zone(
    graph: ZoneGraph,
    zone_id: str,
    seen_at: datetime,
    now: Optional[datetime] = None,
) -> ZoneGraph:
    """
    Register a fresh visit to a known zone.

    The zone is replaced by a copy with ``frequency + 1`` and
    ``last_seen_time = seen_at``. Unknown ids return the input unchanged.
    """
    existing = get_zone(graph, zone_id)
    if existing is None:
        return graph

    updated = existing.model_copy(update={
        "frequency": existing.frequency + 1,
        "last_seen_time": seen_at,
    })
    zones = tuple(updated if z.zone_id == zone_id else z for z in graph.zones)
    return graph.model_copy(update={
        "zones": zones,
        "last_updated_time": _now(now),
    })


def add_edge(graph: ZoneGraph, edge: ZoneEdge, now: Optional[datetime] = None) -> ZoneGraph:
    """
    Add an edge, or merge it into the existing edge for the same (from, to).

    Merge rules:
    - kinematic fields become the mean of old and new (integers rounded)
    - weight = min(1.0, old + new * 0.1), so repeated use saturates toward 1
    - last_used_time is refreshed to ``now``

    Returns
    -------
    ZoneGraph
        New graph with the edge added or merged
    """
    now = _now(now)
    existing = get_edge(graph, edge.from_zone_id, edge.to_zone_id)

    if existing is None:
        edges = graph.edges + (edge,)
    else:
        merged = _merge_edges(existing, edge, now)
        edges = tuple(merged if e.key == edge.key else e for e in graph.edges)

    return graph.model_copy(update={
        "edges": edges,
        "last_updated_time": now,
    })


def _merge_edges(existing: ZoneEdge, incoming: ZoneEdge, now: datetime) -> ZoneEdge:
    """Combine a repeated observation into an existing edge."""
    old = existing.kinematic_signature
    new = incoming.kinematic_signature

    signature = KinematicSignature(
        median_steps=_round_half_up((old.median_steps + new.median_steps) / 2),
        median_turn_angle=(old.median_turn_angle + new.median_turn_angle) / 2,
        median_transition_duration_ms=_round_half_up(
            (old.median_transition_duration_ms + new.median_transition_duration_ms) / 2
        ),
    )
    weight = min(1.0, existing.weight + incoming.weight * EDGE_REINFORCEMENT_RATE)

    return existing.model_copy(update={
        "kinematic_signature": signature,
        "weight": weight,
        "last_used_time": now,
    })


def _round_half_up(value: float) -> int:
    """Round halves up; the built-in round() sends 4.5 to 4."""
    return math.floor(value + 0.5)


def record_transition(
    graph: ZoneGraph,
    transition: ZoneTransition,
    now: Optional[datetime] = None,
) -> ZoneGraph:
    """
    Fold an observed zone crossing into the graph.

    A transition without an origin zone starts at the ``"entry"`` sentinel.
    """
    signature = transition.kinematic_signature
    edge = ZoneEdge(
        from_zone_id=transition.from_zone_id or ENTRY_ZONE_ID,
        to_zone_id=transition.to_zone_id,
        kinematic_signature=KinematicSignature(
            median_steps=signature.steps_taken,
            median_turn_angle=signature.turn_angle_degrees,
            median_transition_duration_ms=signature.transition_duration_ms,
        ),
        weight=1.0,
        last_used_time=transition.timestamp,
    )
    return add_edge(graph, edge, now=now)


def get_zone(graph: ZoneGraph, zone_id: str) -> Optional[Zone]:
    """Get a zone by id, or None."""
    for zone in graph.zones:
        if zone.zone_id == zone_id:
            return zone
    return None


def get_edge(graph: ZoneGraph, from_zone_id: str, to_zone_id: str) -> Optional[ZoneEdge]:
    """Get the directed edge from -> to, or None."""
    for edge in graph.edges:
        if edge.from_zone_id == from_zone_id and edge.to_zone_id == to_zone_id:
            return edge
    return None


def list_zones(graph: ZoneGraph, min_stability: float = 0.0) -> list[Zone]:
    """
    List zones with ``stability >= min_stability``, most visited first.

    The sort is stable, so equal frequencies keep insertion order.
    """
    return sorted(
        (z for z in graph.zones if z.stability >= min_stability),
        key=lambda z: z.frequency,
        reverse=True,
    )


def get_neighbors(graph: ZoneGraph, zone_id: str) -> list[str]:
    """Targets of outgoing edges from ``zone_id``, heaviest edge first."""
    outgoing = sorted(
        (e for e in graph.edges if e.from_zone_id == zone_id),
        key=lambda e: e.weight,
        reverse=True,
    )
    return [e.to_zone_id for e in outgoing]


def estimate_home_size(graph: ZoneGraph) -> HomeSize:
    """Heuristic size bucket from the current zone count."""
    return _home_size_for(len(graph.zones))


def _home_size_for(zone_count: int) -> HomeSize:
    for upper, size in HOME_SIZE_THRESHOLDS:
        if zone_count < upper:
            return size
    return HomeSize.LARGE


def to_networkx(graph: ZoneGraph) -> nx.DiGraph:
    """
    Export the topology as a NetworkX directed graph.

    Zones become nodes carrying their attributes. Edges carry ``weight``
    plus the kinematic signature fields. Edge endpoints that are not known
    zones (such as the entry sentinel) still appear as bare nodes.

    Returns
    -------
    nx.DiGraph
        A fresh graph; changing it does not affect ``graph``
    """
    G = nx.DiGraph(graph_id=graph.graph_id)

    for zone in graph.zones:
        G.add_node(
            zone.zone_id,
            label=zone.label,
            stability=zone.stability,
            frequency=zone.frequency,
            last_seen_time=zone.last_seen_time,
        )

    for edge in graph.edges:
        G.add_edge(
            edge.from_zone_id,
            edge.to_zone_id,
            weight=edge.weight,
            last_used_time=edge.last_used_time,
            **edge.kinematic_signature.model_dump(),
        )

    return G
