"""
Session Services
================

Thin façades that bind the pure graph and ranking functions to a
``TraceStore``.

- GraphService: read/write access to the session's zone topology
- InferenceService: the query-to-results flow for a lost object
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from retrace.core import graph as zone_graph
from retrace.core.schema import HomeSize, Zone, ZoneEdge, ZoneTransition
from retrace.inference.config import RankingConfig
from retrace.inference.ranking import CandidateZone, LossQuery, rank_candidate_zones
from retrace.inference.scoring import BehavioralScores, compute_behavioral_scores
from retrace.platform.errors import MissingContext
from retrace.platform.state import TraceStore


class GraphService:
    """
    Zone graph operations against the store's current graph.

    Mutators are no-ops until a graph is loaded (see ``initialize_graph``);
    readers return empty or default values.

    Example
    -------
    >>> store = TraceStore()
    >>> graphs = GraphService(store)
    >>> graphs.initialize_graph()
    >>> graphs.add_new_zone(kitchen)
    >>> graphs.get_home_size()
    <HomeSize.SMALL: 'small'>
    """

    def __init__(self, store: TraceStore):
        self._store = store

    def initialize_graph(self) -> None:
        """Create an empty graph if none is loaded."""
        if self._store.zone_graph is None:
            self._store.set_zone_graph(zone_graph.create_empty_graph())

    def add_new_zone(self, zone: Zone) -> None:
        graph = self._store.zone_graph
        if graph is None:
            return
        self._store.set_zone_graph(zone_graph.add_zone(graph, zone))

    def add_new_edge(self, edge: ZoneEdge) -> None:
        graph = self._store.zone_graph
        if graph is None:
            return
        self._store.set_zone_graph(zone_graph.add_edge(graph, edge))

    def record_zone_transition(self, transition: ZoneTransition) -> None:
        graph = self._store.zone_graph
        if graph is None:
            return
        self._store.set_zone_graph(zone_graph.record_transition(graph, transition))

    def observe_zone(self, zone_id: str, seen_at: datetime) -> None:
        graph = self._store.zone_graph
        if graph is None:
            return
        self._store.set_zone_graph(zone_graph.observe_zone(graph, zone_id, seen_at))

    def get_zone_by_id(self, zone_id: str) -> Zone | None:
        graph = self._store.zone_graph
        if graph is None:
            return None
        return zone_graph.get_zone(graph, zone_id)

    def get_all_zones(self, min_stability: float = 0.0) -> list[Zone]:
        graph = self._store.zone_graph
        if graph is None:
            return []
        return zone_graph.list_zones(graph, min_stability)

    def get_zone_neighbors(self, zone_id: str) -> list[str]:
        graph = self._store.zone_graph
        if graph is None:
            return []
        return zone_graph.get_neighbors(graph, zone_id)

    def get_home_size(self) -> HomeSize:
        graph = self._store.zone_graph
        if graph is None:
            return HomeSize.SMALL
        return zone_graph.estimate_home_size(graph)


@dataclass(frozen=True)
class InferenceResult:
    """What one inference run produced."""

    query: LossQuery
    candidates: list[CandidateZone]
    scores: BehavioralScores

    @property
    def top_candidate(self) -> CandidateZone | None:
        return self.candidates[0] if self.candidates else None


class InferenceService:
    """
    Runs lost-object inference against the store's episode and graph.
    """

    def __init__(
        self,
        store: TraceStore,
        config: RankingConfig | None = None,
        verbose: bool = True,
    ):
        self._store = store
        self._config = config or RankingConfig()
        self.verbose = verbose

    @property
    def config(self) -> RankingConfig:
        return self._config

    def infer_loss_location(
        self,
        query: LossQuery,
        now: datetime | None = None,
    ) -> InferenceResult:
        """
        Rank candidate zones for ``query`` and score the current episode.

        The query is stored as the session's recent query with its
        candidates filled in.

        Raises
        ------
        MissingContext
            If no episode or no zone graph is loaded
        """
        state = self._store.snapshot()

        missing = []
        if state.current_episode is None:
            missing.append("episode")
        if state.zone_graph is None:
            missing.append("graph")
        if missing:
            raise MissingContext(missing)

        if now is None:
            now = datetime.now(timezone.utc)

        candidates = rank_candidate_zones(
            query,
            state.current_episode,
            state.zone_graph,
            state.object_priors,
            now=now,
            config=self._config,
        )
        scores = compute_behavioral_scores(state.current_episode, now=now, config=self._config)

        answered = query.with_candidates(candidates)
        self._store.set_recent_query(answered)

        if self.verbose:
            top = candidates[0].zone_name if candidates else None
            print(
                f"[InferenceService] Query {query.query_id} ({query.object_type}): "
                f"{len(candidates)} candidates, top={top}"
            )

        return InferenceResult(query=answered, candidates=candidates, scores=scores)
