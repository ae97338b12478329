"""
Session reconciliation: merges fast-channel events and slow-channel
snapshots into the local SessionState.

Snapshots are the only authority for objective presence and round
progression. Events update just the fields they describe, so a SCORE that
ends a round never clears the objective; the next snapshot does.
"""

from common.events import (
    Started, ObjectiveSpawned, ScoreUpdated, PlayerJoined, Ended, GameEnded
)
from common.snapshot import RoomSnapshot, SessionStatus


def pick_winner(players: tuple, scores: dict) -> str:
    """
    Highest scorer, ties going to the earliest entry in *players*, then to
    the lowest id among scorers outside the player list.
    """
    order = list(players) + sorted(p for p in scores if p not in players)
    if not order:
        return None
    best = order[0]
    for pid in order[1:]:
        if scores.get(pid, 0) > scores.get(best, 0):
            best = pid
    return best


class Reconciler:
    """
    Stateless merge of a previous SessionState with one incoming event or
    snapshot.
    """

    def reconcile(self, previous, incoming) -> tuple:
        """
        Args:
            previous: the current SessionState
            incoming: a GameEvent variant or a RoomSnapshot

        Returns:
            (next_state, notification) where notification is a GameEnded
            for an END event and None otherwise.

        Raises:
            TypeError: for input this reconciler has no rule for.
        """
        if isinstance(incoming, RoomSnapshot):
            return self._apply_snapshot(previous, incoming), None
        elif isinstance(incoming, Started):
            return previous.copy(status=SessionStatus.IN_GAME), None
        elif isinstance(incoming, ObjectiveSpawned):
            return self._apply_spawn(previous, incoming), None
        elif isinstance(incoming, ScoreUpdated):
            return self._apply_score(previous, incoming), None
        elif isinstance(incoming, PlayerJoined):
            return self._apply_player_joined(previous, incoming), None
        elif isinstance(incoming, Ended):
            return self._apply_end(previous, incoming)
        raise TypeError(f"No reconciliation rule for {type(incoming).__name__}")

    def _apply_snapshot(self, previous, snapshot: RoomSnapshot):
        objective = snapshot.objective
        if snapshot.status == SessionStatus.FINISHED:
            objective = None
        current = previous.current_objective
        # Same objective re-sent: keep the existing instance and its created_at
        if objective is not None and current is not None and \
                objective.objective_id == current.objective_id:
            objective = current

        return previous.copy(
            room_code=previous.room_code or snapshot.room_code,
            status=snapshot.status,
            players=snapshot.players,
            player_count=snapshot.player_count,
            scores=snapshot.scores,
            round=snapshot.round,
            max_rounds=snapshot.max_rounds,
            current_objective=objective,
        )

    def _apply_spawn(self, previous, event: ObjectiveSpawned):
        current = previous.current_objective
        if current is not None and \
                current.objective_id == event.objective.objective_id:
            return previous
        return previous.copy(current_objective=event.objective)

    def _apply_score(self, previous, event: ScoreUpdated):
        scores = dict(previous.scores)
        scores.update(event.scores)
        return previous.copy(scores=scores)

    def _apply_player_joined(self, previous, event: PlayerJoined):
        players = event.players or previous.players
        return previous.copy(players=players, player_count=event.player_count)

    def _apply_end(self, previous, event: Ended):
        final = dict(previous.scores)
        final.update(event.scores)

        winner = event.winner_id or pick_winner(previous.players, final)
        winner_score = final.get(winner, 0)
        others = [s for pid, s in final.items() if pid != winner]
        loser_score = min(max(others, default=0), winner_score)

        scores = dict(previous.scores)
        for pid in previous.players:
            if pid in event.scores:
                scores[pid] = event.scores[pid]

        state = previous.copy(status=SessionStatus.FINISHED, scores=scores)
        return state, GameEnded(winner, winner_score, loser_score)
