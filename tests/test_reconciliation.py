"""
Unit tests for merging events and snapshots into the session state.
"""

import unittest

from common.events import (
    Started, ObjectiveSpawned, ScoreUpdated, PlayerJoined, Ended, GameEnded,
    parse_event
)
from common.objective import Objective
from common.snapshot import RoomSnapshot, SessionState, SessionStatus
from client.reconciliation import Reconciler, pick_winner


def make_objective(oid: str = 'o1', created_at: float = 10.0) -> Objective:
    return Objective(oid, 0.5, 0.5, 0.1, created_at)


def in_game_state(**changes) -> SessionState:
    state = SessionState(
        room_code='1234', status=SessionStatus.IN_GAME, players=('A', 'B'),
        scores={'A': 0, 'B': 0}, current_objective=make_objective(),
        round=1, max_rounds=5, player_count=2,
    )
    return state.copy(**changes) if changes else state


class TestPickWinner(unittest.TestCase):

    def test_highest_score_wins(self):
        self.assertEqual(pick_winner(('A', 'B'), {'A': 1, 'B': 4}), 'B')

    def test_tie_goes_to_first_player(self):
        self.assertEqual(pick_winner(('A', 'B'), {'A': 2, 'B': 2}), 'A')
        self.assertEqual(pick_winner(('B', 'A'), {'A': 2, 'B': 2}), 'B')

    def test_unknown_scorers_break_ties_by_id(self):
        self.assertEqual(pick_winner((), {'Z': 3, 'M': 3}), 'M')

    def test_no_players(self):
        self.assertIsNone(pick_winner((), {}))


class TestScoreUpdates(unittest.TestCase):
    """ScoreUpdated touches scores and nothing else."""

    def setUp(self):
        self.reconciler = Reconciler()

    def test_score_event_keeps_round(self):
        prev = in_game_state(round=1)
        event = parse_event({'type': 'SCORE', 'payload': {
            'winner': 'A', 'score': {'A': 3, 'B': 1}, 'round': 2
        }})
        state, note = self.reconciler.reconcile(prev, event)

        self.assertIsNone(note)
        self.assertEqual(state.round, 1)
        self.assertEqual(state.scores, {'A': 3, 'B': 1})

    def test_score_event_never_touches_objective_or_round(self):
        sequences = [
            [ScoreUpdated({'A': 1}, 1, 'A')],
            [ScoreUpdated({'A': 1}, 1), ScoreUpdated({'B': 2}, 3)],
            [ScoreUpdated({}, 0), ScoreUpdated({'A': 5, 'B': 5}, 9, 'B')],
        ]
        for prev in (in_game_state(), in_game_state(current_objective=None,
                                                    round=4)):
            for events in sequences:
                state = prev
                for event in events:
                    state, _ = self.reconciler.reconcile(state, event)
                    self.assertIs(state.current_objective,
                                  prev.current_objective)
                    self.assertEqual(state.round, prev.round)

    def test_partial_score_keeps_other_players(self):
        prev = in_game_state(scores={'A': 2, 'B': 1})
        state, _ = self.reconciler.reconcile(prev, ScoreUpdated({'B': 2}))
        self.assertEqual(state.scores, {'A': 2, 'B': 2})

    def test_duplicate_score_is_idempotent(self):
        prev = in_game_state()
        event = ScoreUpdated({'A': 1, 'B': 0}, 1, 'A')
        once, _ = self.reconciler.reconcile(prev, event)
        twice, _ = self.reconciler.reconcile(once, event)
        self.assertEqual(once, twice)


class TestLobbyEvents(unittest.TestCase):

    def setUp(self):
        self.reconciler = Reconciler()

    def test_player_joined_keeps_lobby(self):
        prev = SessionState.initial('A')
        snap = RoomSnapshot.from_dict({'status': 'lobby', 'playerCount': 1},
                                      local_player_id='A')
        state, _ = self.reconciler.reconcile(prev, snap)
        self.assertEqual(state.player_count, 1)

        event = parse_event({'type': 'PLAYER_JOINED', 'payload': {
            'playerCount': 2, 'players': ['A', 'B']
        }})
        state, note = self.reconciler.reconcile(state, event)

        self.assertIsNone(note)
        self.assertEqual(state.player_count, 2)
        self.assertEqual(list(state.players), ['A', 'B'])
        self.assertEqual(state.status, SessionStatus.LOBBY)

        state, _ = self.reconciler.reconcile(state, Started())
        self.assertEqual(state.status, SessionStatus.IN_GAME)

    def test_player_joined_without_list_keeps_players(self):
        prev = SessionState.initial('A')
        state, _ = self.reconciler.reconcile(prev, PlayerJoined((), 2))
        self.assertEqual(state.players, ('A',))
        self.assertEqual(state.player_count, 2)


class TestObjectives(unittest.TestCase):

    def setUp(self):
        self.reconciler = Reconciler()

    def test_spawn_sets_objective(self):
        prev = in_game_state(current_objective=None)
        obj = make_objective('o2')
        state, _ = self.reconciler.reconcile(prev, ObjectiveSpawned(obj))
        self.assertIs(state.current_objective, obj)

    def test_duplicate_spawn_is_noop(self):
        prev = in_game_state()
        again = ObjectiveSpawned(make_objective('o1', created_at=99.0))
        state, _ = self.reconciler.reconcile(prev, again)
        self.assertIs(state, prev)
        self.assertEqual(state.current_objective.created_at, 10.0)

    def test_snapshot_replaces_objective(self):
        prev = in_game_state()
        snap = RoomSnapshot('1234', SessionStatus.IN_GAME, ('A', 'B'),
                            {'A': 1, 'B': 0}, make_objective('o2'), 2, 5, 2)
        state, _ = self.reconciler.reconcile(prev, snap)
        self.assertEqual(state.current_objective.objective_id, 'o2')
        self.assertEqual(state.round, 2)
        self.assertEqual(state.scores, {'A': 1, 'B': 0})

    def test_snapshot_without_objective_clears_it(self):
        prev = in_game_state()
        snap = RoomSnapshot('1234', SessionStatus.IN_GAME, ('A', 'B'),
                            {'A': 1, 'B': 0}, None, 2, 5, 2)
        state, _ = self.reconciler.reconcile(prev, snap)
        self.assertIsNone(state.current_objective)

    def test_finished_snapshot_clears_objective(self):
        prev = in_game_state()
        snap = RoomSnapshot('1234', SessionStatus.FINISHED, ('A', 'B'),
                            {'A': 3, 'B': 2}, make_objective('o2'), 5, 5, 2)
        state, _ = self.reconciler.reconcile(prev, snap)
        self.assertEqual(state.status, SessionStatus.FINISHED)
        self.assertIsNone(state.current_objective)

        snap.objective = make_objective('o1')
        state, _ = self.reconciler.reconcile(prev, snap)
        self.assertIsNone(state.current_objective)

    def test_snapshot_keeps_same_objective_age(self):
        prev = in_game_state()
        snap = RoomSnapshot('1234', SessionStatus.IN_GAME, ('A', 'B'),
                            {}, make_objective('o1', created_at=55.0), 1, 5, 2)
        state, _ = self.reconciler.reconcile(prev, snap)
        self.assertIs(state.current_objective, prev.current_objective)

    def test_snapshot_does_not_rename_room(self):
        prev = in_game_state()
        snap = RoomSnapshot('9999', SessionStatus.IN_GAME, ('A', 'B'))
        state, _ = self.reconciler.reconcile(prev, snap)
        self.assertEqual(state.room_code, '1234')


class TestEnded(unittest.TestCase):

    def setUp(self):
        self.reconciler = Reconciler()

    def assertFinished(self, state, note):
        self.assertEqual(state.status, SessionStatus.FINISHED)
        self.assertIsInstance(note, GameEnded)
        self.assertGreaterEqual(note.winner_score, note.loser_score)

    def test_end_picks_winner_from_scores(self):
        prev = in_game_state(scores={'A': 1, 'B': 1})
        state, note = self.reconciler.reconcile(prev, Ended({'A': 2, 'B': 3}))
        self.assertFinished(state, note)
        self.assertEqual(note, GameEnded('B', 3, 2))
        self.assertEqual(state.scores, {'A': 2, 'B': 3})

    def test_end_with_champion(self):
        prev = in_game_state()
        state, note = self.reconciler.reconcile(
            prev, Ended({'A': 3, 'B': 2}, winner_id='A'))
        self.assertFinished(state, note)
        self.assertEqual(note, GameEnded('A', 3, 2))

    def test_end_tie_goes_to_first_player(self):
        prev = in_game_state()
        state, note = self.reconciler.reconcile(prev, Ended({'A': 2, 'B': 2}))
        self.assertFinished(state, note)
        self.assertEqual(note, GameEnded('A', 2, 2))

    def test_champion_with_lower_score_still_orders(self):
        prev = in_game_state()
        state, note = self.reconciler.reconcile(
            prev, Ended({'A': 1, 'B': 4}, winner_id='A'))
        self.assertFinished(state, note)
        self.assertEqual(note.winner_id, 'A')
        self.assertEqual(note.loser_score, 1)

    def test_end_without_scores(self):
        prev = SessionState.initial('A')
        state, note = self.reconciler.reconcile(prev, Ended({}))
        self.assertFinished(state, note)
        self.assertEqual(note, GameEnded('A', 0, 0))

    def test_every_end_sequence_orders_scores(self):
        for scores in ({}, {'A': 0}, {'B': 7}, {'A': 5, 'B': 1},
                       {'A': 1, 'B': 5}, {'X': 9}):
            for champion in (None, 'A', 'B'):
                _, note = self.reconciler.reconcile(
                    in_game_state(), Ended(scores, champion))
                self.assertGreaterEqual(note.winner_score, note.loser_score)


class TestDispatch(unittest.TestCase):

    def test_unknown_input_raises(self):
        reconciler = Reconciler()
        with self.assertRaises(TypeError):
            reconciler.reconcile(in_game_state(), {'type': 'START'})
        with self.assertRaises(TypeError):
            reconciler.reconcile(in_game_state(), None)


if __name__ == '__main__':
    unittest.main()
