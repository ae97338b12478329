"""
In-process room backend for local play and integration tests.

Holds the authoritative room state, decides hits and rounds, and publishes
events and snapshots to subscribers exactly as a remote service would.
"""

import random
import threading
import uuid

from common.backend import BackendError, RoomBackend
from common.config import (
    DEFAULT_MAX_ROUNDS, MAX_PLAYERS, REFERENCE_WIDTH, REFERENCE_HEIGHT
)
from common.events import EventType
from common.snapshot import SessionStatus
from common.streams import Subscription

SPAWN_RADIUS = (80.0, 140.0)    # in reference pixels


class Room:
    """Authoritative state of one room."""

    def __init__(self, room_id: str, code: str, max_rounds: int):
        self.room_id = room_id
        self.code = code
        self.status = SessionStatus.LOBBY
        self.players = []
        self.scores = {}
        self.round = 0
        self.max_rounds = max_rounds
        self.spawn = None            # last SPAWN payload while in game
        self.spawn_seq = 0
        self.event_subs = []
        self.snapshot_subs = []

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'status': self.status,
            'players': list(self.players),
            'score': dict(self.scores),
            'round': self.round,
            'maxRounds': self.max_rounds,
            'playerCount': len(self.players),
            'lastSpawn': dict(self.spawn) if self.spawn else None,
        }


class LocalRoomBackend(RoomBackend):
    """
    Thread-safe RoomBackend kept entirely in memory.

    Rooms start as soon as the second player joins; every first valid hit
    scores one point and ends the round.
    """

    def __init__(self, max_rounds: int = DEFAULT_MAX_ROUNDS, seed: int = None,
                 verbose: bool = True):
        self.max_rounds = max_rounds
        self.rng = random.Random(seed)
        self.verbose = verbose
        self.rooms = {}              # room_id -> Room
        self._lock = threading.RLock()

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    def _room(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            raise BackendError(f"Unknown room {room_id!r}")
        return room

    def room_by_code(self, code: str) -> Room:
        for room in self.rooms.values():
            if room.code == code and room.status != SessionStatus.FINISHED:
                return room
        return None

    # -- RoomBackend ----------------------------------------------------------

    def create_or_join_room(self, code: str, player_id: str) -> str:
        if not isinstance(code, str) or len(code) != 4 or not code.isdigit():
            raise BackendError(f"Malformed room code {code!r}")
        if not player_id:
            raise BackendError("A player id is required")

        with self._lock:
            room = self.room_by_code(code)
            if room is None:
                room = Room(uuid.uuid4().hex[:10], code, self.max_rounds)
                self.rooms[room.room_id] = room
                self._log(f"[BACKEND] Room {code} created ({room.room_id})")

            if player_id in room.players:
                return room.room_id
            if len(room.players) >= MAX_PLAYERS:
                raise BackendError(f"Room {code} is full")

            room.players.append(player_id)
            room.scores[player_id] = 0
            self._log(f"[BACKEND] {player_id} joined room {code}")
            self._publish_event(room, EventType.PLAYER_JOINED, {
                'playerCount': len(room.players),
                'players': list(room.players),
            })

            if len(room.players) == MAX_PLAYERS:
                room.status = SessionStatus.IN_GAME
                room.round = 1
                self._publish_event(room, EventType.START, {})
                self._spawn(room)
            self._publish_snapshot(room)
            return room.room_id

    def fetch_snapshot(self, room_id: str) -> dict:
        with self._lock:
            return self._room(room_id).to_dict()

    def subscribe_events(self, room_id: str) -> Subscription:
        with self._lock:
            room = self._room(room_id)
            sub = Subscription(f"events:{room_id}", on_cancel=self._unsubscribe)
            room.event_subs.append(sub)
            return sub

    def subscribe_snapshots(self, room_id: str) -> Subscription:
        with self._lock:
            room = self._room(room_id)
            sub = Subscription(f"snapshots:{room_id}",
                               on_cancel=self._unsubscribe)
            room.snapshot_subs.append(sub)
            return sub

    def submit_hit(self, room_id: str, objective_id: str, player_id: str):
        with self._lock:
            room = self._room(room_id)
            if room.status != SessionStatus.IN_GAME:
                raise BackendError(f"Room {room.code} is not in game")
            if player_id not in room.players:
                raise BackendError(f"{player_id} is not in room {room.code}")
            if room.spawn is None or room.spawn['spawnId'] != objective_id:
                raise BackendError(f"Objective {objective_id} already resolved")

            room.scores[player_id] += 1
            self._publish_event(room, EventType.SCORE, {
                'winner': player_id,
                'score': dict(room.scores),
                'round': room.round,
            })

            if room.round >= room.max_rounds:
                self._finish(room)
            else:
                room.round += 1
                self._spawn(room)
            self._publish_snapshot(room)

    # -- internals -------------------------------------------------------------

    def _spawn(self, room: Room):
        room.spawn_seq += 1
        r = self.rng.uniform(*SPAWN_RADIUS)
        room.spawn = {
            'spawnId': f"{room.room_id}-{room.spawn_seq}",
            'cx': round(self.rng.uniform(r, REFERENCE_WIDTH - r), 1),
            'cy': round(self.rng.uniform(r, REFERENCE_HEIGHT - r), 1),
            'r': round(r, 1),
        }
        self._publish_event(room, EventType.SPAWN, dict(room.spawn))

    def _finish(self, room: Room):
        room.status = SessionStatus.FINISHED
        room.spawn = None
        best = max(room.scores.values(), default=0)
        leaders = [p for p in room.players if room.scores[p] == best]
        payload = {'score': dict(room.scores)}
        if len(leaders) == 1:
            payload['champion'] = leaders[0]
        self._publish_event(room, EventType.END, payload)
        self._log(f"[BACKEND] Room {room.code} finished: {room.scores}")

    def _publish_event(self, room: Room, etype: str, payload: dict):
        for sub in list(room.event_subs):
            sub.push({'type': etype, 'payload': dict(payload)})

    def _publish_snapshot(self, room: Room):
        for sub in list(room.snapshot_subs):
            sub.push(room.to_dict())

    def _unsubscribe(self, sub: Subscription):
        with self._lock:
            for room in self.rooms.values():
                if sub in room.event_subs:
                    room.event_subs.remove(sub)
                if sub in room.snapshot_subs:
                    room.snapshot_subs.remove(sub)
