"""
Tests for the Inference Engine
==============================

Tests the scoring primitives, episode-level scores, ranking pipeline and
ranking configuration.
"""

import json
import math

import pytest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from retrace.core.schema import (
    DisruptionEvent,
    DisruptionType,
    EpisodeEvents,
    MovementEpisode,
    Zone,
    ZoneTransition,
)
from retrace.core.graph import add_zone, create_empty_graph
from retrace.inference.config import CONFIG_ENV_VAR, RankingConfig
from retrace.inference.scoring import (
    compute_ads,
    compute_behavioral_scores,
    compute_bls,
    compute_csi,
)
from retrace.inference.ranking import (
    LossQuery,
    QueryStatus,
    SearchRadius,
    rank_candidate_zones,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def now() -> datetime:
    """Frozen evaluation time."""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def disruption(at: datetime, severity: float, kind=DisruptionType.CALL) -> DisruptionEvent:
    return DisruptionEvent(
        timestamp=at,
        type=kind,
        severity=severity,
        description=f"{kind.value} at severity {severity}",
    )


def make_episode(now: datetime, disruptions=(), transitions=()) -> MovementEpisode:
    return MovementEpisode(
        episode_id="ep_1",
        start_time=now - timedelta(minutes=30),
        end_time=now,
        duration_ms=30 * 60 * 1000,
        step_count=420,
        turns=12,
        total_distance_m=250.0,
        average_heading=180.0,
        confidence=0.9,
        events=EpisodeEvents(
            disruptions=tuple(disruptions),
            transitions=tuple(transitions),
        ),
    )


def make_zone(zone_id: str, label: str, last_seen: datetime, frequency=1, stability=0.5) -> Zone:
    return Zone(
        zone_id=zone_id,
        label=label,
        stability=stability,
        last_seen_time=last_seen,
        frequency=frequency,
    )


def graph_of(now: datetime, *zones: Zone):
    graph = create_empty_graph(now=now)
    for zone in zones:
        graph = add_zone(graph, zone, now=now)
    return graph


@pytest.fixture
def query(now) -> LossQuery:
    return LossQuery(
        query_id="q_keys",
        object_type="keys",
        last_seen=now,
        time_window=timedelta(minutes=10),
        created_time=now,
    )


@pytest.fixture
def kitchen_scenario(now):
    """
    Kitchen: seen just now, habitual, with a call 2 s before leaving.
    Bedroom: seen a minute ago, rarely visited, no disruptions.
    Attic: seen an hour ago, outside the query window.
    """
    kitchen = make_zone("z_kitchen", "Kitchen", now, frequency=5, stability=0.9)
    bedroom = make_zone("z_bedroom", "Bedroom", now - timedelta(seconds=60), frequency=0)
    attic = make_zone("z_attic", "Attic", now - timedelta(hours=1), frequency=9)
    episode = make_episode(now, disruptions=[disruption(now - timedelta(seconds=2), 0.8)])
    return graph_of(now, kitchen, bedroom, attic), episode


# =============================================================================
# Scoring Primitive Tests
# =============================================================================

class TestComputeCSI:
    """Tests for the Cognitive Stability Index."""

    def test_no_disruptions_is_fully_stable(self):
        assert compute_csi([]) == 1.0

    def test_inverts_mean_severity(self, now):
        events = [disruption(now, 0.2), disruption(now, 0.6)]
        assert compute_csi(events) == pytest.approx(0.6)

    def test_floor_at_zero(self, now):
        assert compute_csi([disruption(now, 1.0)]) == 0.0


class TestComputeBLS:
    """Tests for the Boundary Likelihood Score."""

    def test_fresh_and_frequent_saturates(self):
        assert compute_bls(0, 5) == 1.0

    def test_frequency_capped_at_five(self):
        assert compute_bls(0, 50) == 1.0

    def test_recency_decay(self):
        assert compute_bls(60_000, 0) == pytest.approx(math.exp(-1) / 2)

    def test_blend_of_recency_and_frequency(self):
        assert compute_bls(0, 2) == pytest.approx(0.7)

    def test_future_timestamp_still_bounded(self):
        assert compute_bls(-120_000, 5) == 1.0

    def test_far_future_timestamp_saturates_without_overflow(self):
        twelve_hours_ms = 12 * 3600 * 1000
        assert compute_bls(-twelve_hours_ms, 0) == 1.0
        assert compute_bls(-100 * twelve_hours_ms, 5) == 1.0


class TestComputeADS:
    """Tests for the Attentional Disruption Score."""

    def test_absent_event(self):
        assert compute_ads(None) == 0.0

    def test_event_severity(self, now):
        assert compute_ads(disruption(now, 0.45)) == 0.45


# =============================================================================
# Episode Score Tests
# =============================================================================

class TestBehavioralScores:
    """Tests for compute_behavioral_scores."""

    def test_calm_episode(self, now):
        scores = compute_behavioral_scores(make_episode(now), now=now)
        assert scores.csi == 1.0
        assert scores.ads == 0.0
        assert scores.timestamp == now

    def test_ads_uses_first_disruption_only(self, now):
        episode = make_episode(now, disruptions=[
            disruption(now - timedelta(minutes=5), 0.6),
            disruption(now - timedelta(minutes=1), 0.2),
        ])
        scores = compute_behavioral_scores(episode, now=now)
        assert scores.ads == pytest.approx(0.6)
        assert scores.csi == pytest.approx(0.6)

    def test_bls_from_episode_end_and_transitions(self, now):
        transitions = [
            ZoneTransition(timestamp=now - timedelta(minutes=2), to_zone_id="a"),
            ZoneTransition(timestamp=now - timedelta(minutes=1), from_zone_id="a", to_zone_id="b"),
        ]
        scores = compute_behavioral_scores(make_episode(now, transitions=transitions), now=now)
        assert scores.bls == pytest.approx(0.7)

    def test_scores_bounded(self, now):
        episode = make_episode(now, disruptions=[disruption(now, 1.0)])
        scores = compute_behavioral_scores(episode, now=now - timedelta(hours=1))
        for value in (scores.csi, scores.bls, scores.ads):
            assert 0.0 <= value <= 1.0

    def test_episode_ending_after_evaluation_time(self, now):
        scores = compute_behavioral_scores(make_episode(now), now=now - timedelta(hours=12))
        assert scores.bls == 1.0


# =============================================================================
# Ranking Tests
# =============================================================================

class TestRankCandidateZones:
    """Tests for rank_candidate_zones."""

    def test_empty_graph_returns_empty_list(self, query, now):
        assert rank_candidate_zones(query, make_episode(now), create_empty_graph(now=now), now=now) == []

    def test_missing_episode_or_graph_returns_empty_list(self, query, kitchen_scenario, now):
        graph, episode = kitchen_scenario
        assert rank_candidate_zones(query, None, graph, now=now) == []
        assert rank_candidate_zones(query, episode, None, now=now) == []

    def test_time_window_filter(self, query, now):
        kitchen = make_zone("z_kitchen", "Kitchen", now - timedelta(seconds=5))
        bedroom = make_zone("z_bedroom", "Bedroom", now - timedelta(hours=1))
        ranked = rank_candidate_zones(query, make_episode(now), graph_of(now, kitchen, bedroom), now=now)
        assert [c.zone_name for c in ranked] == ["Kitchen"]

    def test_window_start_is_inclusive(self, query, now):
        edge = make_zone("z_edge", "Porch", now - timedelta(minutes=10))
        ranked = rank_candidate_zones(query, make_episode(now), graph_of(now, edge), now=now)
        assert len(ranked) == 1

    def test_zone_seen_far_in_future_is_scored(self, query, now):
        clock_skewed = make_zone("z_skewed", "Garage", now + timedelta(hours=12))
        ranked = rank_candidate_zones(query, make_episode(now), graph_of(now, clock_skewed), now=now)

        assert len(ranked) == 1
        assert ranked[0].probability == pytest.approx(0.35)
        assert ranked[0].search_radius == SearchRadius.WIDE

    def test_disrupted_habitual_zone_scores_high(self, query, kitchen_scenario, now):
        graph, episode = kitchen_scenario
        ranked = rank_candidate_zones(query, episode, graph, now=now)

        assert [c.zone_id for c in ranked] == ["z_kitchen", "z_bedroom"]
        kitchen = ranked[0]
        assert kitchen.probability == pytest.approx(0.4 * 0.8 + 0.35 * 1.0 + 0.25 * 0.8)
        assert kitchen.confidence == 1.0
        assert kitchen.search_radius == SearchRadius.TIGHT
        assert kitchen.reasoning.disruption_event.severity == 0.8
        assert kitchen.reasoning.routine_match == "Zone visited 5 times, confidence 90%"
        assert kitchen.reasoning.time_of_day == "12:00:00"

    def test_quiet_rare_zone_scores_low(self, query, kitchen_scenario, now):
        graph, episode = kitchen_scenario
        bedroom = rank_candidate_zones(query, episode, graph, now=now)[1]

        assert bedroom.probability == pytest.approx(0.35 * math.exp(-1) / 2)
        assert bedroom.confidence == 0.0
        assert bedroom.search_radius == SearchRadius.WIDE
        assert bedroom.reasoning.disruption_event is None

    def test_moderate_radius_with_two_agreeing_signals(self, query, now):
        zone = make_zone("z_desk", "Desk", now, frequency=5)
        episode = make_episode(now, disruptions=[disruption(now - timedelta(seconds=1), 0.4)])
        candidate = rank_candidate_zones(query, episode, graph_of(now, zone), now=now)[0]

        assert candidate.confidence == pytest.approx(2 / 3)
        assert candidate.search_radius == SearchRadius.MODERATE

    def test_disruption_lookback_bounds(self, query, now):
        zone = make_zone("z_desk", "Desk", now)
        inside = disruption(now - timedelta(seconds=10), 0.5)
        too_early = disruption(now - timedelta(seconds=10, milliseconds=1), 0.9)
        after = disruption(now + timedelta(seconds=1), 0.9)
        episode = make_episode(now, disruptions=[too_early, inside, after])

        candidate = rank_candidate_zones(query, episode, graph_of(now, zone), now=now)[0]
        assert candidate.reasoning.disruption_event == inside

    def test_object_prior_boosts_matching_label(self, now):
        query = LossQuery(object_type="wallet", last_seen=now, time_window=timedelta(minutes=10))
        desk = make_zone("z_desk", "Desk", now, frequency=5)
        sofa = make_zone("z_sofa", "Sofa", now, frequency=5)
        graph = graph_of(now, desk, sofa)

        plain = rank_candidate_zones(query, make_episode(now), graph, now=now)
        boosted = rank_candidate_zones(query, make_episode(now), graph, {"wallet": "Sofa"}, now=now)

        assert plain[0].probability == pytest.approx(0.35)
        assert boosted[0].zone_name == "Sofa"
        assert boosted[0].probability == pytest.approx(0.42)
        assert boosted[0].confidence == pytest.approx(1 / 3 * 1.1)
        assert boosted[0].search_radius == SearchRadius.WIDE
        assert boosted[1].probability == pytest.approx(0.35)

    def test_prior_for_other_object_is_ignored(self, query, now):
        zone = make_zone("z_desk", "Desk", now, frequency=5)
        ranked = rank_candidate_zones(query, make_episode(now), graph_of(now, zone), {"phone": "Desk"}, now=now)
        assert ranked[0].probability == pytest.approx(0.35)

    def test_boost_capped_at_one(self, query, kitchen_scenario, now):
        graph, episode = kitchen_scenario
        kitchen = rank_candidate_zones(query, episode, graph, {"keys": "Kitchen"}, now=now)[0]
        assert kitchen.probability == 1.0
        assert kitchen.confidence == 1.0

    def test_output_bounded_and_sorted(self, now):
        query = LossQuery(object_type="keys", last_seen=now, time_window=timedelta(hours=2))
        zones = [
            make_zone(f"z_{i}", f"Zone {i}", now - timedelta(minutes=7 * i), frequency=i, stability=i / 20)
            for i in range(15)
        ]
        disruptions = [
            disruption(now - timedelta(minutes=7 * i, seconds=3), (i % 5) / 4)
            for i in range(15)
        ]
        ranked = rank_candidate_zones(
            query,
            make_episode(now, disruptions=disruptions),
            graph_of(now, *zones),
            {"keys": "Zone 3"},
            now=now,
        )

        assert len(ranked) == 15
        probabilities = [c.probability for c in ranked]
        assert probabilities == sorted(probabilities, reverse=True)
        for c in ranked:
            assert 0.0 <= c.probability <= 1.0
            assert 0.0 <= c.confidence <= 1.0

    def test_deterministic_for_frozen_now(self, query, kitchen_scenario, now):
        graph, episode = kitchen_scenario
        first = rank_candidate_zones(query, episode, graph, now=now)
        second = rank_candidate_zones(query, episode, graph, now=now)
        assert first == second

    def test_ranking_does_not_touch_inputs(self, query, kitchen_scenario, now):
        graph, episode = kitchen_scenario
        rank_candidate_zones(query, episode, graph, now=now)
        assert query.candidates == ()
        assert query.status == QueryStatus.PENDING
        assert len(graph.zones) == 3


class TestLossQuery:
    """Tests for LossQuery helpers."""

    def test_window_start(self, query, now):
        assert query.window_start == now - timedelta(minutes=10)

    def test_with_candidates_keeps_status(self, query, kitchen_scenario, now):
        graph, episode = kitchen_scenario
        answered = query.with_candidates(rank_candidate_zones(query, episode, graph, now=now))
        assert len(answered.candidates) == 2
        assert answered.status == QueryStatus.PENDING
        assert answered.mark_complete().status == QueryStatus.COMPLETE

    def test_generated_query_id(self, now):
        q = LossQuery(object_type="phone", last_seen=now, time_window=timedelta(minutes=1))
        assert q.query_id.startswith("query_")

    def test_rejects_naive_last_seen(self):
        with pytest.raises(ValidationError):
            LossQuery(
                object_type="phone",
                last_seen=datetime(2024, 1, 15, 12, 0, 0),
                time_window=timedelta(minutes=1),
            )


# =============================================================================
# Config Tests
# =============================================================================

class TestRankingConfig:
    """Tests for RankingConfig loading and validation."""

    def test_defaults(self):
        config = RankingConfig()
        assert config.ads_weight == 0.4
        assert config.disruption_lookback_ms == 10_000

    def test_rejects_weights_not_summing_to_one(self):
        with pytest.raises(ValidationError):
            RankingConfig.from_dict({"ads_weight": 0.9})

    def test_rejects_inverted_radius_thresholds(self):
        with pytest.raises(ValidationError):
            RankingConfig.from_dict({"wide_radius_confidence": 0.9})

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "ranking.json"
        path.write_text(json.dumps({"disruption_lookback_ms": 30_000}))
        config = RankingConfig.from_json_file(path)
        assert config.disruption_lookback_ms == 30_000
        assert config.bls_weight == 0.35

    def test_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "ranking.json"
        path.write_text(json.dumps({"frequency_cap": 10}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert RankingConfig.from_env().frequency_cap == 10

    def test_from_env_defaults_when_unset(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert RankingConfig.from_env() == RankingConfig()

    def test_longer_lookback_changes_attribution(self, query, now):
        zone = make_zone("z_desk", "Desk", now)
        episode = make_episode(now, disruptions=[disruption(now - timedelta(seconds=20), 0.7)])
        graph = graph_of(now, zone)

        default = rank_candidate_zones(query, episode, graph, now=now)[0]
        widened = rank_candidate_zones(
            query, episode, graph, now=now,
            config=RankingConfig.from_dict({"disruption_lookback_ms": 30_000}),
        )[0]

        assert default.reasoning.disruption_event is None
        assert widened.reasoning.disruption_event.severity == 0.7
