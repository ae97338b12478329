"""
Game events from the fast channel and notifications surfaced to the UI.

Wire format of an event:
    {"type": "START" | "SPAWN" | "SCORE" | "END" | "PLAYER_JOINED",
     "payload": {...}}

Delivery is at-least-once, so every event here must be safe to apply twice.
"""

from common.objective import ReferenceFrame, spawn_payload_to_objective
from common.snapshot import parse_players, parse_scores, to_int


class EventType:
    """Event type identifiers."""
    START         = 'START'
    SPAWN         = 'SPAWN'
    SCORE         = 'SCORE'
    END           = 'END'
    PLAYER_JOINED = 'PLAYER_JOINED'

    ALL = (START, SPAWN, SCORE, END, PLAYER_JOINED)


class GameEvent:
    """Base class for the closed set of fast-channel events."""

    event_type = None

    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    def __repr__(self):
        fields = ', '.join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


class Started(GameEvent):
    event_type = EventType.START


class ObjectiveSpawned(GameEvent):
    event_type = EventType.SPAWN

    def __init__(self, objective):
        self.objective = objective


class ScoreUpdated(GameEvent):
    event_type = EventType.SCORE

    def __init__(self, scores: dict, round: int = 0, winner: str = None):
        self.scores = dict(scores)
        self.round = round
        self.winner = winner


class PlayerJoined(GameEvent):
    event_type = EventType.PLAYER_JOINED

    def __init__(self, players: tuple, player_count: int):
        self.players = tuple(players)
        self.player_count = player_count


class Ended(GameEvent):
    event_type = EventType.END

    def __init__(self, scores: dict, winner_id: str = None):
        self.scores = dict(scores)
        self.winner_id = winner_id


def parse_event(raw: dict, reference: ReferenceFrame = None) -> GameEvent:
    """
    Decode a wire event into its GameEvent variant.

    Raises ValueError for a non-object, an unknown type or an unusable
    SPAWN payload. Missing fields elsewhere default rather than fail.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Event must be an object, got {type(raw).__name__}")

    etype = raw.get('type')
    payload = raw.get('payload')
    if not isinstance(payload, dict):
        payload = {}

    if etype == EventType.START:
        return Started()
    elif etype == EventType.SPAWN:
        return ObjectiveSpawned(spawn_payload_to_objective(payload, reference))
    elif etype == EventType.SCORE:
        return ScoreUpdated(
            parse_scores(payload.get('score')),
            to_int(payload.get('round'), 0),
            payload.get('winner') or None,
        )
    elif etype == EventType.PLAYER_JOINED:
        players = parse_players(payload.get('players'))
        count = to_int(payload.get('playerCount'), len(players))
        return PlayerJoined(players, len(players) if players else count)
    elif etype == EventType.END:
        return Ended(
            parse_scores(payload.get('score')),
            payload.get('champion') or None,
        )
    raise ValueError(f"Unknown event type: {etype!r}")


class Notification:
    """Base class for terminal and error notifications."""

    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    def __repr__(self):
        fields = ', '.join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


class GameEnded(Notification):
    """The match is over; emitted once per applied END event."""

    def __init__(self, winner_id: str, winner_score: int, loser_score: int):
        self.winner_id = winner_id
        self.winner_score = winner_score
        self.loser_score = loser_score


class SessionError(Notification):
    """A non-fatal, user-visible failure."""

    def __init__(self, message: str):
        self.message = message
