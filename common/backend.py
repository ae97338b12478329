"""
The remote room service the session engine talks to.

Implementations own transport, reconnection and authoritative scoring; the
engine only consumes what they deliver. Every failure a caller is expected
to survive must surface as BackendError.
"""

from abc import ABC, abstractmethod

from common.streams import Subscription


class BackendError(Exception):
    """A transient or rejected backend call."""


class RoomBackend(ABC):
    """Interface to the authoritative room service."""

    @abstractmethod
    def create_or_join_room(self, code: str, player_id: str) -> str:
        """Create the room *code* or take its free seat. Returns the room id."""

    @abstractmethod
    def fetch_snapshot(self, room_id: str) -> dict:
        """Full room state as a wire dict."""

    @abstractmethod
    def subscribe_events(self, room_id: str) -> Subscription:
        """Stream of ``{type, payload}`` event dicts for the room."""

    @abstractmethod
    def subscribe_snapshots(self, room_id: str) -> Subscription:
        """Stream of full snapshot dicts pushed whenever the room changes."""

    @abstractmethod
    def submit_hit(self, room_id: str, objective_id: str, player_id: str):
        """Claim a hit on *objective_id*. Raises BackendError on rejection."""
