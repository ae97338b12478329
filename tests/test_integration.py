"""
Integration tests: two session controllers play a full match on the
in-process backend, plus replay of a recorded match through a lossy,
duplicating delivery path.
"""

import random
import time
import unittest

from common.events import GameEnded
from common.snapshot import SessionState, SessionStatus
from common.streams import DeliverySimulator, Subscription
from client.session import SessionController
from server.room_backend import LocalRoomBackend


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class TestFullMatch(unittest.TestCase):

    def setUp(self):
        self.backend = LocalRoomBackend(max_rounds=3, seed=11, verbose=False)
        self.players = {}
        for pid in ('A', 'B'):
            room_id = self.backend.create_or_join_room('2468', pid)
            ctrl = SessionController(self.backend, pid, settle_delay=0.01,
                                     poll_interval=0.02, verbose=False)
            ctrl.init_session(room_id)
            self.players[pid] = ctrl

    def tearDown(self):
        for ctrl in self.players.values():
            ctrl.leave_session()

    def play_round(self, hitter: str, used: set) -> str:
        ctrl = self.players[hitter]

        def fresh_objective():
            obj = ctrl.state.current_objective
            return obj is not None and obj.objective_id not in used

        self.assertTrue(wait_until(fresh_objective))
        objective_id = ctrl.state.current_objective.objective_id
        self.assertTrue(ctrl.submit_hit(objective_id).result(timeout=5.0))
        used.add(objective_id)
        return objective_id

    def test_match_converges(self):
        used = set()
        for hitter in ('A', 'B', 'A'):
            self.play_round(hitter, used)

        for pid, ctrl in self.players.items():
            self.assertTrue(wait_until(
                lambda: ctrl.state.status == SessionStatus.FINISHED))
            note = ctrl.get_notification(timeout=5.0)
            self.assertEqual(note, GameEnded('A', 2, 1))
            self.assertEqual(ctrl.state.scores, {'A': 2, 'B': 1})
            self.assertEqual(ctrl.state.players, ('A', 'B'))
            self.assertFalse(ctrl.poller.running)

        self.assertEqual(self.players['A'].state.round,
                         self.players['B'].state.round)

    def test_losing_race_reports_error(self):
        first = self.play_round('A', set())
        # B still holds the resolved objective id
        future = self.players['B'].submit_hit(first)
        self.assertFalse(future.result(timeout=5.0))
        note = self.players['B'].get_notification(timeout=5.0)
        self.assertEqual(note.message, "Could not register hit")


class TestUnreliableDelivery(unittest.TestCase):
    """Duplicated and dropped events converge once a snapshot lands."""

    def record_match(self):
        backend = LocalRoomBackend(max_rounds=2, seed=5, verbose=False)
        room_id = backend.create_or_join_room('1357', 'A')
        events = backend.subscribe_events(room_id)
        snapshots = backend.subscribe_snapshots(room_id)
        backend.create_or_join_room('1357', 'B')
        for pid in ('A', 'B'):
            spawn = backend.rooms[room_id].spawn
            backend.submit_hit(room_id, spawn['spawnId'], pid)
        recorded = _drain(events), _drain(snapshots)
        events.cancel()
        snapshots.cancel()
        return recorded

    def replay(self, raw_events, simulator_args):
        sub = Subscription('replay')
        sim = DeliverySimulator(sub, rng=random.Random(9), **simulator_args)
        for raw in raw_events:
            sim.push(raw)

        ctrl = SessionController(LocalRoomBackend(verbose=False), 'A',
                                 verbose=False)
        for raw in _drain(sub):
            ctrl.on_remote_event(raw)
        return ctrl.state, ctrl.drain_notifications(), sim

    def test_duplicates_are_harmless(self):
        raw_events, _ = self.record_match()
        clean, clean_notes, _ = self.replay(raw_events, {})
        doubled, notes, sim = self.replay(raw_events, {'duplicate_rate': 1.0})

        self.assertEqual(sim.duplicated, len(raw_events))
        self.assertEqual(doubled.status, clean.status)
        self.assertEqual(doubled.scores, clean.scores)
        self.assertEqual(doubled.players, clean.players)
        self.assertEqual(doubled.current_objective.objective_id,
                         clean.current_objective.objective_id)
        self.assertEqual(clean_notes, [GameEnded('A', 1, 1)])
        self.assertEqual(notes, clean_notes)

    def test_snapshot_repairs_lost_events(self):
        raw_events, raw_snapshots = self.record_match()
        state, _, sim = self.replay(raw_events, {'loss_rate': 1.0})
        self.assertEqual(sim.dropped, len(raw_events))
        self.assertEqual(state, SessionState.initial('A'))

        ctrl = SessionController(LocalRoomBackend(verbose=False), 'A',
                                 verbose=False)
        for raw in raw_events[:1]:
            ctrl.on_remote_event(raw)
        ctrl.on_remote_snapshot(raw_snapshots[-1])

        self.assertEqual(ctrl.state.status, SessionStatus.FINISHED)
        self.assertEqual(ctrl.state.scores, {'A': 1, 'B': 1})
        self.assertEqual(ctrl.state.round, 2)
        self.assertIsNone(ctrl.state.current_objective)


def _drain(sub: Subscription) -> list:
    items = []
    while True:
        item = sub.get(timeout=0.01)
        if item is None:
            return items
        items.append(item)


if __name__ == '__main__':
    unittest.main()
