"""
Domain Schema
=============

Immutable data models shared by the zone graph and the inference engine.

Every model is frozen: an update produces a new instance through
``model_copy(update=...)`` and the previous instance stays valid. Sequences
are stored as tuples so that no list can be appended to behind a graph's back.

Models:
- Zone / ZoneEdge / ZoneGraph: learned spatial topology
- StepEvent / ZoneTransition / DisruptionEvent: upstream movement events
- MovementEpisode: one continuous activity window
- UserProfile: per-user calibration (object priors)
"""

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


ENTRY_ZONE_ID = "entry"
"""Sentinel zone id used as the origin of the first transition in a session."""


class HomeSize(str, Enum):
    """Coarse size estimate derived from the number of learned zones."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class DisruptionType(str, Enum):
    """Kinds of events that may interrupt the user's attention."""

    CALL = "call"
    NOTIFICATION = "notification"
    ACCELERATION = "acceleration"
    PAUSE = "pause"
    MANUAL = "manual"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# Topology
# =============================================================================


class Zone(_Frozen):
    """A recognized spatial region, e.g. "Kitchen Island" or "Bedroom Door"."""

    zone_id: str
    """Unique key within a graph."""

    label: str
    """Human-readable name; object priors match against this."""

    embedding: tuple[float, ...] = ()
    """Compressed environmental fingerprint, computed upstream."""

    stability: float = Field(default=0.0, ge=0.0, le=1.0)
    """How consistently this zone is recognized."""

    last_seen_time: AwareDatetime

    frequency: int = Field(default=0, ge=0)
    """Visit count."""

    notes: Optional[str] = None


class KinematicSignature(_Frozen):
    """Median movement profile of transitions along one edge."""

    median_steps: int = 0
    median_turn_angle: float = 0.0
    median_transition_duration_ms: int = 0


class ZoneEdge(_Frozen):
    """
    A directed, weighted record of observed transitions between two zones.

    ``from -> to`` and ``to -> from`` are distinct edges.
    """

    from_zone_id: str
    to_zone_id: str
    kinematic_signature: KinematicSignature = Field(default_factory=KinematicSignature)
    weight: float = Field(default=1.0, ge=0.0, le=1.0)
    last_used_time: AwareDatetime

    @property
    def key(self) -> tuple[str, str]:
        """Ordered (from, to) pair identifying this edge."""
        return (self.from_zone_id, self.to_zone_id)


class GraphMetadata(_Frozen):
    version_id: int = 1
    estimated_home_size: HomeSize = HomeSize.SMALL
    zone_count: int = 0


class ZoneGraph(_Frozen):
    """
    The learned topology of one home.

    Operations live in ``retrace.core.graph``; this model only carries state.
    """

    graph_id: str
    created_time: AwareDatetime
    last_updated_time: AwareDatetime
    zones: tuple[Zone, ...] = ()
    edges: tuple[ZoneEdge, ...] = ()
    metadata: GraphMetadata = Field(default_factory=GraphMetadata)

    @model_validator(mode="after")
    def _validate_zone_count(self) -> "ZoneGraph":
        """Keep metadata.zone_count in step with the zone tuple."""
        if self.metadata.zone_count != len(self.zones):
            raise ValueError(
                f"metadata.zone_count={self.metadata.zone_count} "
                f"does not match {len(self.zones)} zones"
            )
        return self

    def __repr__(self) -> str:
        return (
            f"ZoneGraph(id={self.graph_id}, zones={len(self.zones)}, "
            f"edges={len(self.edges)})"
        )


# =============================================================================
# Movement
# =============================================================================


class StepEvent(_Frozen):
    timestamp: AwareDatetime
    step_length_m: float = Field(ge=0.0)
    heading: float
    """Degrees, 0-360."""
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class TransitionSignature(_Frozen):
    """Kinematics of a single observed zone crossing."""

    steps_taken: int = 0
    turn_angle_degrees: float = 0.0
    transition_duration_ms: int = 0


class ZoneTransition(_Frozen):
    """A detected zone boundary crossing."""

    timestamp: AwareDatetime
    from_zone_id: Optional[str] = None
    """None when this is the first zone of a session."""
    to_zone_id: str
    kinematic_signature: TransitionSignature = Field(default_factory=TransitionSignature)


class DisruptionEvent(_Frozen):
    """A moment when the user's attention was likely interrupted."""

    timestamp: AwareDatetime
    type: DisruptionType
    severity: float = Field(ge=0.0, le=1.0)
    description: str = ""


class EpisodeEvents(_Frozen):
    steps: tuple[StepEvent, ...] = ()
    transitions: tuple[ZoneTransition, ...] = ()
    disruptions: tuple[DisruptionEvent, ...] = ()


class MovementEpisode(_Frozen):
    """
    Compressed record of one continuous movement session.

    Produced upstream and read-only to the core.
    """

    episode_id: str
    start_time: AwareDatetime
    end_time: AwareDatetime
    duration_ms: int = Field(default=0, ge=0)
    step_count: int = Field(default=0, ge=0)
    turns: int = Field(default=0, ge=0)
    total_distance_m: float = Field(default=0.0, ge=0.0)
    average_heading: float = 0.0
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    events: EpisodeEvents = Field(default_factory=EpisodeEvents)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "MovementEpisode":
        """Ensure episode bounds are valid."""
        if self.end_time < self.start_time:
            raise ValueError("end_time must be greater than or equal to start_time")
        return self


# =============================================================================
# User
# =============================================================================


class UserProfile(_Frozen):
    """Lightweight per-user calibration."""

    user_id: str
    name: str = ""
    created_time: AwareDatetime
    object_priors: Mapping[str, str] = Field(default_factory=dict)
    """Object type -> preferred zone label, e.g. {"keys": "Hallway"}. Read-only."""
    home_location_zone_id: Optional[str] = None

    @field_validator("object_priors", mode="after")
    @classmethod
    def _freeze_priors(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("object_priors")
    def _dump_priors(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)
