"""
Application state holder for one user session.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import Lock

from retrace.core.schema import MovementEpisode, UserProfile, ZoneGraph
from retrace.inference.ranking import LossQuery


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoreSnapshot:
    """Consistent, read-only view of the store at one moment."""

    user: UserProfile | None = None
    current_episode: MovementEpisode | None = None
    zone_graph: ZoneGraph | None = None
    recent_query: LossQuery | None = None
    last_update: datetime | None = None

    @property
    def object_priors(self) -> dict[str, str]:
        """The user's object priors, empty without a user."""
        if self.user is None:
            return {}
        return dict(self.user.object_priors)


class TraceStore:
    """
    Single-writer container for the active user, episode, graph and query.

    Each instance is independent; pass it to the services that need it.
    Every setter swaps in a new snapshot under a lock, so readers never see
    a half-applied update.
    """

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self._lock = Lock()
        self._state = StoreSnapshot(last_update=_utcnow())

    def init(
        self,
        user: UserProfile | None = None,
        graph: ZoneGraph | None = None,
        episode: MovementEpisode | None = None,
    ) -> None:
        """Start a session from a clean state with optional preloaded values."""
        with self._lock:
            self._state = StoreSnapshot(
                user=user,
                current_episode=episode,
                zone_graph=graph,
                last_update=_utcnow(),
            )
        self._log(
            f"Initialized (user={user.user_id if user else None}, "
            f"graph={graph.graph_id if graph else None}, "
            f"episode={episode.episode_id if episode else None})"
        )

    def reset(self) -> None:
        """Drop all session state."""
        with self._lock:
            self._state = StoreSnapshot(last_update=_utcnow())
        self._log("Reset to initial state")

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return self._state

    @property
    def user(self) -> UserProfile | None:
        return self.snapshot().user

    @property
    def current_episode(self) -> MovementEpisode | None:
        return self.snapshot().current_episode

    @property
    def zone_graph(self) -> ZoneGraph | None:
        return self.snapshot().zone_graph

    @property
    def recent_query(self) -> LossQuery | None:
        return self.snapshot().recent_query

    @property
    def last_update(self) -> datetime | None:
        return self.snapshot().last_update

    def initialize_user(self, user: UserProfile) -> None:
        self._set(user=user)

    def set_current_episode(self, episode: MovementEpisode | None) -> None:
        self._set(current_episode=episode)

    def set_zone_graph(self, graph: ZoneGraph | None) -> None:
        self._set(zone_graph=graph)

    def set_recent_query(self, query: LossQuery | None) -> None:
        self._set(recent_query=query)

    def _set(self, **changes) -> None:
        with self._lock:
            self._state = replace(self._state, last_update=_utcnow(), **changes)

    def _log(self, message: str) -> None:
        if self.verbose:
            print(f"[TraceStore] {message}")

    def __repr__(self) -> str:
        state = self.snapshot()
        return (
            f"TraceStore(user={state.user.user_id if state.user else None}, "
            f"graph={state.zone_graph!r}, "
            f"episode={state.current_episode.episode_id if state.current_episode else None})"
        )
