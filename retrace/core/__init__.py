"""
Retrace Core: Zone Topology Graph
=================================

Immutable models and pure operations for the learned spatial topology of a
home: named zones and the directed, weighted transitions between them.

Public API:
- ZoneGraph, Zone, ZoneEdge: topology models
- MovementEpisode and its events: upstream movement records
- create_empty_graph / add_zone / add_edge / record_transition: updates
- get_zone / list_zones / get_neighbors / estimate_home_size: queries
- to_networkx: topology export
"""

from retrace.core.schema import (
    ENTRY_ZONE_ID,
    DisruptionEvent,
    DisruptionType,
    EpisodeEvents,
    GraphMetadata,
    HomeSize,
    KinematicSignature,
    MovementEpisode,
    StepEvent,
    TransitionSignature,
    UserProfile,
    Zone,
    ZoneEdge,
    ZoneGraph,
    ZoneTransition,
)
from retrace.core.graph import (
    add_edge,
    add_zone,
    create_empty_graph,
    estimate_home_size,
    get_edge,
    get_neighbors,
    get_zone,
    list_zones,
    observe_zone,
    record_transition,
    to_networkx,
)

__all__ = [
    "ENTRY_ZONE_ID",
    "DisruptionEvent",
    "DisruptionType",
    "EpisodeEvents",
    "GraphMetadata",
    "HomeSize",
    "KinematicSignature",
    "MovementEpisode",
    "StepEvent",
    "TransitionSignature",
    "UserProfile",
    "Zone",
    "ZoneEdge",
    "ZoneGraph",
    "ZoneTransition",
    "add_edge",
    "add_zone",
    "create_empty_graph",
    "estimate_home_size",
    "get_edge",
    "get_neighbors",
    "get_zone",
    "list_zones",
    "observe_zone",
    "record_transition",
    "to_networkx",
]
