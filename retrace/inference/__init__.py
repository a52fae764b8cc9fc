"""
Retrace Inference Engine
========================

Rule-based behavioral scoring and lost-object candidate ranking.

Public API:
- rank_candidate_zones: query + episode + graph -> ranked CandidateZone list
- compute_behavioral_scores: episode -> BehavioralScores
- compute_csi / compute_bls / compute_ads: scoring primitives
- RankingConfig: tunable constants
"""

from retrace.inference.config import DEFAULT_RANKING_CONFIG, RankingConfig
from retrace.inference.scoring import (
    BehavioralScores,
    compute_ads,
    compute_behavioral_scores,
    compute_bls,
    compute_csi,
)
from retrace.inference.ranking import (
    CandidateReasoning,
    CandidateZone,
    LossQuery,
    QueryStatus,
    SearchRadius,
    rank_candidate_zones,
)

__all__ = [
    "DEFAULT_RANKING_CONFIG",
    "RankingConfig",
    "BehavioralScores",
    "compute_ads",
    "compute_behavioral_scores",
    "compute_bls",
    "compute_csi",
    "CandidateReasoning",
    "CandidateZone",
    "LossQuery",
    "QueryStatus",
    "SearchRadius",
    "rank_candidate_zones",
]
