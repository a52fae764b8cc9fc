"""
Ranking Configuration
=====================

Configuration-driven constants for behavioral scoring and candidate ranking.

The defaults reproduce the fixed policy of the engine. A JSON file can
override any subset of them, either passed explicitly or named by the
``RETRACE_RANKING_CONFIG`` environment variable (``.env`` files are honored).
"""

import json
import math
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator


CONFIG_ENV_VAR = "RETRACE_RANKING_CONFIG"


DEFAULT_RANKING_CONFIG: dict[str, Any] = {
    "ads_weight": 0.4,
    "bls_weight": 0.35,
    "instability_weight": 0.25,
    "disruption_lookback_ms": 10_000,
    "recency_scale_ms": 60_000,
    "frequency_cap": 5,
    "csi_agreement_threshold": 0.5,
    "bls_agreement_threshold": 0.5,
    "ads_agreement_threshold": 0.3,
    "tight_radius_confidence": 0.7,
    "wide_radius_confidence": 0.4,
    "prior_probability_boost": 1.2,
    "prior_confidence_boost": 1.1,
}


class RankingConfig(BaseModel):
    """
    Tunable constants of the ranking pipeline.

    Example
    -------
    >>> config = RankingConfig.from_dict({"disruption_lookback_ms": 20_000})
    >>> config.ads_weight
    0.4
    """

    model_config = ConfigDict(frozen=True)

    ads_weight: float = Field(default=DEFAULT_RANKING_CONFIG["ads_weight"], ge=0.0)
    """Weight of the attentional-disruption score in the probability."""

    bls_weight: float = Field(default=DEFAULT_RANKING_CONFIG["bls_weight"], ge=0.0)
    """Weight of the boundary-likelihood score."""

    instability_weight: float = Field(
        default=DEFAULT_RANKING_CONFIG["instability_weight"], ge=0.0
    )
    """Weight of (1 - CSI)."""

    disruption_lookback_ms: int = Field(
        default=DEFAULT_RANKING_CONFIG["disruption_lookback_ms"], ge=0
    )
    """How far before a zone's last-seen moment disruptions are attributed to it."""

    recency_scale_ms: float = Field(default=DEFAULT_RANKING_CONFIG["recency_scale_ms"], gt=0.0)
    """Time constant of the exponential recency decay in BLS."""

    frequency_cap: int = Field(default=DEFAULT_RANKING_CONFIG["frequency_cap"], gt=0)
    """Visit count at which the BLS frequency term saturates."""

    csi_agreement_threshold: float = DEFAULT_RANKING_CONFIG["csi_agreement_threshold"]
    bls_agreement_threshold: float = DEFAULT_RANKING_CONFIG["bls_agreement_threshold"]
    ads_agreement_threshold: float = DEFAULT_RANKING_CONFIG["ads_agreement_threshold"]

    tight_radius_confidence: float = DEFAULT_RANKING_CONFIG["tight_radius_confidence"]
    wide_radius_confidence: float = DEFAULT_RANKING_CONFIG["wide_radius_confidence"]

    prior_probability_boost: float = Field(
        default=DEFAULT_RANKING_CONFIG["prior_probability_boost"], ge=1.0
    )
    prior_confidence_boost: float = Field(
        default=DEFAULT_RANKING_CONFIG["prior_confidence_boost"], ge=1.0
    )

    @model_validator(mode="after")
    def _validate_weights(self) -> "RankingConfig":
        """Probability weights must sum to 1 so the result stays in [0, 1]."""
        total = self.ads_weight + self.bls_weight + self.instability_weight
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"score weights must sum to 1.0, got {total}")

        if self.wide_radius_confidence > self.tight_radius_confidence:
            raise ValueError("wide_radius_confidence must not exceed tight_radius_confidence")
        return self

    @classmethod
    def from_dict(cls, overrides: Optional[dict[str, Any]] = None) -> "RankingConfig":
        """Build a config from defaults plus any overrides."""
        merged = dict(DEFAULT_RANKING_CONFIG)
        merged.update(overrides or {})
        return cls(**merged)

    @classmethod
    def from_json_file(cls, path: Path | str) -> "RankingConfig":
        """Load overrides from a JSON file."""
        with open(path) as f:
            overrides = json.load(f)
        return cls.from_dict(overrides)

    @classmethod
    def from_env(cls) -> "RankingConfig":
        """
        Load from the file named by ``RETRACE_RANKING_CONFIG``.

        Falls back to defaults when the variable is unset.
        """
        load_dotenv()
        path = os.environ.get(CONFIG_ENV_VAR)
        if not path:
            return cls()
        return cls.from_json_file(path)
