"""
Candidate Ranking
=================

Turns a loss query, a movement episode and a zone graph into a
probability-ranked list of places the object was likely left.

Pipeline (per zone visited inside the query window):
1. Attribute disruptions from a short look-back before the zone's last visit
2. Score CSI / BLS / ADS
3. Combine into probability and a signal-agreement confidence
4. Pick a search radius tier and attach human-readable reasoning
5. Boost zones matching the user's object prior
6. Sort by probability, highest first

The pipeline never raises: missing context degrades to an empty list.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Mapping, Optional
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from retrace.core.schema import DisruptionEvent, MovementEpisode, Zone, ZoneGraph
from retrace.inference.config import RankingConfig
from retrace.inference.scoring import (
    clamp_unit,
    compute_ads,
    compute_bls,
    compute_csi,
    elapsed_ms,
)


TIME_OF_DAY_FORMAT = "%H:%M:%S"


class SearchRadius(str, Enum):
    """How widely the user should search around a candidate zone."""

    TIGHT = "tight"
    MODERATE = "moderate"
    WIDE = "wide"


class QueryStatus(str, Enum):
    PENDING = "pending"
    COMPLETE = "complete"


class CandidateReasoning(BaseModel):
    """Why a zone was proposed."""

    model_config = ConfigDict(frozen=True)

    disruption_event: Optional[DisruptionEvent] = None
    """First disruption attributed to the zone, if any."""

    routine_match: str
    time_of_day: str


class CandidateZone(BaseModel):
    """A ranked, scored guess at where the queried object was left."""

    model_config = ConfigDict(frozen=True)

    zone_id: str
    zone_name: str
    probability: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: CandidateReasoning
    search_radius: SearchRadius


class LossQuery(BaseModel):
    """
    A user's question about where they left an object.

    The ranking engine fills ``candidates``; moving ``status`` to COMPLETE
    is left to the caller.
    """

    model_config = ConfigDict(frozen=True)

    query_id: str = Field(default_factory=lambda: f"query_{uuid4().hex[:12]}")
    object_type: str
    """e.g. "keys", "wallet", "phone"."""

    last_seen: AwareDatetime
    time_window: timedelta
    """How far back from ``last_seen`` to search."""

    created_time: AwareDatetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    candidates: tuple[CandidateZone, ...] = ()
    status: QueryStatus = QueryStatus.PENDING

    @property
    def window_start(self) -> datetime:
        """Earliest last-seen time a zone may have to be a candidate."""
        return self.last_seen - self.time_window

    def with_candidates(self, candidates: list[CandidateZone]) -> "LossQuery":
        """Copy with candidates filled in; status is left untouched."""
        return self.model_copy(update={"candidates": tuple(candidates)})

    def mark_complete(self) -> "LossQuery":
        return self.model_copy(update={"status": QueryStatus.COMPLETE})


def rank_candidate_zones(
    query: LossQuery,
    episode: Optional[MovementEpisode],
    graph: Optional[ZoneGraph],
    object_priors: Optional[Mapping[str, str]] = None,
    *,
    now: Optional[datetime] = None,
    config: Optional[RankingConfig] = None,
) -> list[CandidateZone]:
    """
    Rank the zones where ``query.object_type`` was most likely left.

    Parameters
    ----------
    query : LossQuery
        Object type, last-seen time and search window
    episode : MovementEpisode, optional
        Movement episode supplying disruption events
    graph : ZoneGraph, optional
        Zone topology snapshot
    object_priors : mapping, optional
        Object type -> preferred zone label
    now : datetime, optional
        Evaluation time, sampled once. Defaults to now (UTC).
    config : RankingConfig, optional
        Scoring constants. Defaults to the built-in policy.

    Returns
    -------
    list[CandidateZone]
        Candidates sorted by probability, highest first. Empty when the
        episode or graph is missing or the graph has no zones.
    """
    if episode is None or graph is None or not graph.zones:
        return []

    if now is None:
        now = datetime.now(timezone.utc)
    config = config or RankingConfig()

    prior_label = (object_priors or {}).get(query.object_type)
    window_start = query.window_start

    candidates = [
        _score_zone(zone, episode, now, config, prior_label)
        for zone in graph.zones
        if zone.last_seen_time >= window_start
    ]

    candidates.sort(key=lambda c: c.probability, reverse=True)
    return candidates


def _score_zone(
    zone: Zone,
    episode: MovementEpisode,
    now: datetime,
    config: RankingConfig,
    prior_label: Optional[str],
) -> CandidateZone:
    """Score a single zone that passed the time-window filter."""
    disruptions = _disruptions_before(zone, episode, config)
    first = disruptions[0] if disruptions else None

    csi = compute_csi(disruptions)
    bls = compute_bls(elapsed_ms(zone.last_seen_time, now), zone.frequency, config)
    ads = compute_ads(first)

    probability = clamp_unit(
        config.ads_weight * ads
        + config.bls_weight * bls
        + config.instability_weight * (1.0 - csi)
    )

    agreeing = sum((
        csi < config.csi_agreement_threshold,
        bls > config.bls_agreement_threshold,
        ads > config.ads_agreement_threshold,
    ))
    confidence = min(1.0, agreeing / 3)

    search_radius = _search_radius_for(confidence, config)

    if prior_label is not None and zone.label == prior_label:
        probability = min(1.0, probability * config.prior_probability_boost)
        confidence = min(1.0, confidence * config.prior_confidence_boost)

    return CandidateZone(
        zone_id=zone.zone_id,
        zone_name=zone.label,
        probability=probability,
        confidence=confidence,
        reasoning=CandidateReasoning(
            disruption_event=first,
            routine_match=_describe_routine(zone),
            time_of_day=zone.last_seen_time.strftime(TIME_OF_DAY_FORMAT),
        ),
        search_radius=search_radius,
    )


def _disruptions_before(
    zone: Zone,
    episode: MovementEpisode,
    config: RankingConfig,
) -> list[DisruptionEvent]:
    """Episode disruptions inside [last_seen - lookback, last_seen]."""
    end = zone.last_seen_time
    start = end - timedelta(milliseconds=config.disruption_lookback_ms)
    return [d for d in episode.events.disruptions if start <= d.timestamp <= end]


def _search_radius_for(confidence: float, config: RankingConfig) -> SearchRadius:
    if confidence > config.tight_radius_confidence:
        return SearchRadius.TIGHT
    if confidence < config.wide_radius_confidence:
        return SearchRadius.WIDE
    return SearchRadius.MODERATE


def _describe_routine(zone: Zone) -> str:
    """Human-readable summary of how habitual a zone is."""
    return f"Zone visited {zone.frequency} times, confidence {zone.stability * 100:.0f}%"
