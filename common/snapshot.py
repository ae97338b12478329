"""
Room snapshots from the slow channel and the local session state.
"""

from common.config import DEFAULT_MAX_ROUNDS, MAX_PLAYERS
from common.objective import Objective, ReferenceFrame, spawn_payload_to_objective


class SessionStatus:
    """Room lifecycle values as they appear on the wire."""
    LOBBY    = 'lobby'
    IN_GAME  = 'in_game'
    FINISHED = 'finished'

    ALL = (LOBBY, IN_GAME, FINISHED)

    @classmethod
    def parse(cls, value) -> str:
        """Unknown or missing status resolves to lobby."""
        return value if value in cls.ALL else cls.LOBBY


def to_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def parse_scores(raw) -> dict:
    if not isinstance(raw, dict):
        return {}
    return {str(pid): max(0, to_int(v)) for pid, v in raw.items()}


def parse_players(raw) -> tuple:
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(p) for p in raw if p)[:MAX_PLAYERS]


class SessionState:
    """
    The locally-authoritative view of one room.

    Instances are treated as immutable values: reconciliation builds a new
    state with copy() instead of mutating the current one.
    """

    __slots__ = ('room_code', 'status', 'players', 'scores',
                 'current_objective', 'round', 'max_rounds', 'player_count')

    def __init__(self, room_code: str = '', status: str = SessionStatus.LOBBY,
                 players: tuple = (), scores: dict = None,
                 current_objective: Objective = None, round: int = 0,
                 max_rounds: int = DEFAULT_MAX_ROUNDS, player_count: int = 0):
        self.room_code = room_code
        self.status = SessionStatus.parse(status)
        self.players = tuple(players)[:MAX_PLAYERS]
        self.scores = dict(scores or {})
        self.current_objective = current_objective
        self.max_rounds = max_rounds if max_rounds > 0 else DEFAULT_MAX_ROUNDS
        self.round = max(0, min(round, self.max_rounds))
        self.player_count = max(0, min(player_count, MAX_PLAYERS))

    @staticmethod
    def initial(local_player_id: str, room_code: str = '') -> 'SessionState':
        """State before the first snapshot: lobby, local player placeholder."""
        return SessionState(room_code=room_code, players=(local_player_id,))

    @property
    def player1_id(self) -> str:
        return self.players[0] if self.players else None

    @property
    def player2_id(self) -> str:
        return self.players[1] if len(self.players) > 1 else None

    def score_of(self, player_id: str) -> int:
        return self.scores.get(player_id, 0)

    def copy(self, **changes) -> 'SessionState':
        fields = {name: getattr(self, name) for name in self.__slots__}
        fields.update(changes)
        return SessionState(**fields)

    def __eq__(self, other):
        if not isinstance(other, SessionState):
            return NotImplemented
        return all(getattr(self, n) == getattr(other, n) for n in self.__slots__)

    def __repr__(self):
        return (f"SessionState(code={self.room_code!r}, status={self.status}, "
                f"players={list(self.players)}, scores={self.scores}, "
                f"round={self.round}/{self.max_rounds}, "
                f"objective={self.current_objective!r})")


class RoomSnapshot:
    """A full authoritative room description from the slow channel."""

    def __init__(self, room_code: str = '', status: str = SessionStatus.LOBBY,
                 players: tuple = (), scores: dict = None,
                 objective: Objective = None, round: int = 0,
                 max_rounds: int = DEFAULT_MAX_ROUNDS, player_count: int = 0):
        self.room_code = room_code
        self.status = status
        self.players = tuple(players)
        self.scores = scores or {}
        self.objective = objective
        self.round = round
        self.max_rounds = max_rounds
        self.player_count = player_count

    @staticmethod
    def from_dict(data: dict, local_player_id: str = None,
                  reference: ReferenceFrame = None) -> 'RoomSnapshot':
        """
        Parse a wire snapshot, resolving absent fields to safe defaults.

        Missing players fall back to the local player as a placeholder; an
        unreadable embedded objective is treated as no objective.
        """
        if not isinstance(data, dict):
            raise ValueError("Snapshot must be an object")

        players = parse_players(data.get('players'))
        if players:
            player_count = len(players)
        else:
            players = (local_player_id,) if local_player_id else ()
            player_count = to_int(data.get('playerCount'), 0)

        raw_scores = data.get('scores', data.get('score'))
        raw_objective = data.get('currentObjective', data.get('lastSpawn'))
        objective = None
        if raw_objective:
            try:
                objective = spawn_payload_to_objective(raw_objective, reference)
            except ValueError:
                objective = None

        return RoomSnapshot(
            room_code=str(data.get('code', data.get('roomCode', '')) or ''),
            status=SessionStatus.parse(data.get('status', data.get('state'))),
            players=players,
            scores=parse_scores(raw_scores),
            objective=objective,
            round=to_int(data.get('round'), 0),
            max_rounds=to_int(data.get('maxRounds'), DEFAULT_MAX_ROUNDS),
            player_count=player_count,
        )

    def __repr__(self):
        return (f"RoomSnapshot(status={self.status}, "
                f"players={list(self.players)}, round={self.round})")
