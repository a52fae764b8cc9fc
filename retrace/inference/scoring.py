"""
Behavioral Scoring
==================

Rule-based indices describing how the user moved and how often they were
interrupted. All scores are bounded to [0, 1].

- CSI (Cognitive Stability Index): higher = calmer, fewer disruptions
- BLS (Boundary Likelihood Score): higher = recent and frequent zone crossings
- ADS (Attentional Disruption Score): severity of the disruption in play
"""

from datetime import datetime, timezone
import math
from typing import Optional, Sequence

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from retrace.core.schema import DisruptionEvent, MovementEpisode
from retrace.inference.config import RankingConfig


_DEFAULT_CONFIG = RankingConfig()

_MAX_RECENCY_EXPONENT = 700.0
"""Below math.exp overflow; any timestamp this far ahead already saturates BLS."""


class BehavioralScores(BaseModel):
    """Per-episode summary, independent of any query."""

    model_config = ConfigDict(frozen=True)

    csi: float = Field(ge=0.0, le=1.0)
    bls: float = Field(ge=0.0, le=1.0)
    ads: float = Field(ge=0.0, le=1.0)
    timestamp: AwareDatetime


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]."""
    return max(0.0, min(1.0, value))


def compute_csi(disruptions: Sequence[DisruptionEvent]) -> float:
    """
    Cognitive Stability Index: 1 minus the mean disruption severity.

    Returns 1.0 when there were no disruptions.
    """
    if not disruptions:
        return 1.0

    mean_severity = sum(d.severity for d in disruptions) / len(disruptions)
    return max(0.0, 1.0 - mean_severity)


def compute_bls(
    time_since_last_transition_ms: float,
    transition_count: int,
    config: Optional[RankingConfig] = None,
) -> float:
    """
    Boundary Likelihood Score.

    Averages an exponential recency decay (60 s scale by default) with a
    visit-frequency term that saturates at 5 visits.
    """
    config = config or _DEFAULT_CONFIG
    exponent = -(time_since_last_transition_ms / config.recency_scale_ms)
    recency = math.exp(min(exponent, _MAX_RECENCY_EXPONENT))
    frequency = min(1.0, transition_count / config.frequency_cap)
    return min(1.0, (recency + frequency) / 2)


def compute_ads(event: Optional[DisruptionEvent]) -> float:
    """Attentional Disruption Score: the event's severity, 0 without one."""
    if event is None:
        return 0.0
    return event.severity


def elapsed_ms(since: datetime, now: datetime) -> float:
    return (now - since).total_seconds() * 1000.0


def compute_behavioral_scores(
    episode: MovementEpisode,
    now: Optional[datetime] = None,
    config: Optional[RankingConfig] = None,
) -> BehavioralScores:
    """
    Summarize a whole episode.

    ADS uses only the FIRST disruption of the episode, not an aggregate.

    Parameters
    ----------
    episode : MovementEpisode
        Episode to summarize
    now : datetime, optional
        Evaluation time. Defaults to now (UTC).
    config : RankingConfig, optional
        Scoring constants. Defaults to the built-in policy.

    Returns
    -------
    BehavioralScores
        Clamped scores stamped with ``now``
    """
    if now is None:
        now = datetime.now(timezone.utc)

    disruptions = episode.events.disruptions
    first = disruptions[0] if disruptions else None

    csi = compute_csi(disruptions)
    bls = compute_bls(
        elapsed_ms(episode.end_time, now),
        len(episode.events.transitions),
        config,
    )
    ads = compute_ads(first)

    return BehavioralScores(
        csi=clamp_unit(csi),
        bls=clamp_unit(bls),
        ads=clamp_unit(ads),
        timestamp=now,
    )
