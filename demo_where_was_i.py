"""
Retrace Demo: Where Did I Leave My Keys?
========================================
Builds a small home topology from zone transitions, replays an interrupted
movement episode and ranks where the keys were most likely put down.
"""

from datetime import datetime, timedelta, timezone

from retrace.core.schema import (
    DisruptionEvent,
    DisruptionType,
    EpisodeEvents,
    MovementEpisode,
    TransitionSignature,
    UserProfile,
    Zone,
    ZoneTransition,
)
from retrace.inference.config import RankingConfig
from retrace.inference.ranking import LossQuery
from retrace.platform.services import GraphService, InferenceService
from retrace.platform.state import TraceStore


NOW = datetime.now(timezone.utc)

ZONES = [
    ("z_entry", "Front Door", 0.95, 14, timedelta(minutes=12)),
    ("z_hall", "Hallway", 0.80, 22, timedelta(minutes=11)),
    ("z_kitchen", "Kitchen Island", 0.90, 18, timedelta(minutes=6)),
    ("z_living", "Sofa", 0.70, 9, timedelta(seconds=40)),
    ("z_bed", "Bedroom Desk", 0.60, 5, timedelta(hours=3)),
]

PATH = ["z_entry", "z_hall", "z_kitchen", "z_living"]


def build_session(store: TraceStore) -> None:
    """Populate the store with a user, a learned graph and an episode."""
    store.init(user=UserProfile(
        user_id="demo",
        name="Demo User",
        created_time=NOW - timedelta(days=14),
        object_priors={"keys": "Kitchen Island"},
    ))

    graphs = GraphService(store)
    graphs.initialize_graph()
    for zone_id, label, stability, frequency, ago in ZONES:
        graphs.add_new_zone(Zone(
            zone_id=zone_id,
            label=label,
            stability=stability,
            frequency=frequency,
            last_seen_time=NOW - ago,
        ))

    transitions = []
    previous = None
    for i, zone_id in enumerate(PATH):
        transition = ZoneTransition(
            timestamp=NOW - timedelta(minutes=12 - 3 * i),
            from_zone_id=previous,
            to_zone_id=zone_id,
            kinematic_signature=TransitionSignature(
                steps_taken=6 + 2 * i,
                turn_angle_degrees=45.0 * i,
                transition_duration_ms=2500 + 500 * i,
            ),
        )
        graphs.record_zone_transition(transition)
        transitions.append(transition)
        previous = zone_id

    kitchen_left = NOW - timedelta(minutes=6)
    store.set_current_episode(MovementEpisode(
        episode_id="demo_episode",
        start_time=NOW - timedelta(minutes=13),
        end_time=NOW - timedelta(seconds=30),
        duration_ms=int(timedelta(minutes=12, seconds=30).total_seconds() * 1000),
        step_count=180,
        turns=7,
        total_distance_m=95.0,
        average_heading=140.0,
        confidence=0.85,
        events=EpisodeEvents(
            transitions=tuple(transitions),
            disruptions=(
                DisruptionEvent(
                    timestamp=kitchen_left - timedelta(seconds=3),
                    type=DisruptionType.CALL,
                    severity=0.85,
                    description="Incoming call while unpacking groceries",
                ),
            ),
        ),
    ))

    print(f"Home size: {graphs.get_home_size().value}")
    print(f"From the hallway you usually go to: {graphs.get_zone_neighbors('z_hall')}")


def main():
    store = TraceStore()
    build_session(store)

    service = InferenceService(store, config=RankingConfig.from_env())
    result = service.infer_loss_location(LossQuery(
        object_type="keys",
        last_seen=NOW,
        time_window=timedelta(minutes=15),
    ))

    print("\nBehavioral scores:")
    print(f"  CSI={result.scores.csi:.2f}  BLS={result.scores.bls:.2f}  ADS={result.scores.ads:.2f}")

    print("\nWhere to look:")
    for rank, candidate in enumerate(result.candidates, start=1):
        print(
            f"  {rank}. {candidate.zone_name:<16} p={candidate.probability:.2f} "
            f"conf={candidate.confidence:.2f} radius={candidate.search_radius.value}"
        )
        print(f"     {candidate.reasoning.routine_match}, last there {candidate.reasoning.time_of_day}")
        if candidate.reasoning.disruption_event is not None:
            print(f"     interrupted by: {candidate.reasoning.disruption_event.description}")


if __name__ == "__main__":
    main()
