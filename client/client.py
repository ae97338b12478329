"""
Local play shell. Runs a room on the in-process backend, wires the session
controller to the animation engine and the pygame renderer, and optionally
plays the opponent with a bot.
"""

import random
import threading
import time

from common.config import WINDOW_WIDTH, WINDOW_HEIGHT, DEFAULT_MAX_ROUNDS
from common.events import GameEnded, SessionError
from common.snapshot import SessionStatus
from client.animation import AnimationHitEngine
from client.renderer import GameRenderer
from client.session import SessionController
from server.room_backend import LocalRoomBackend


class TapBot:
    """Taps each new objective after a randomized reaction time."""

    def __init__(self, controller: SessionController,
                 reaction: tuple = (0.4, 1.2), seed: int = None):
        self.controller = controller
        self.reaction = reaction
        self.rng = random.Random(seed)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name='tap-bot',
                                        daemon=True)

    def start(self):
        self._thread.start()

    def stop(self):
        self._stop.set()

    def _run(self):
        tapped = None
        while not self._stop.wait(0.05):
            state = self.controller.state
            if state.status == SessionStatus.FINISHED:
                break
            objective = state.current_objective
            if state.status != SessionStatus.IN_GAME or objective is None:
                continue
            if objective.objective_id == tapped:
                continue
            if self._stop.wait(self.rng.uniform(*self.reaction)):
                break
            tapped = objective.objective_id
            self.controller.submit_hit(tapped)


class LocalPlayClient:
    """
    One local player against a bot, both talking to the same in-process
    backend through their own SessionController.
    """

    def __init__(self, code: str = '1234', player_id: str = 'you',
                 opponent_id: str = 'bot', max_rounds: int = DEFAULT_MAX_ROUNDS,
                 headless: bool = False, verbose: bool = False):
        self.code = code
        self.player_id = player_id
        self.headless = headless
        self.running = False

        self.backend = LocalRoomBackend(max_rounds=max_rounds, verbose=verbose)
        self.controller = SessionController(self.backend, player_id,
                                            verbose=verbose)
        self.opponent = SessionController(self.backend, opponent_id,
                                          verbose=verbose)
        self.bots = [TapBot(self.opponent)]
        if headless:
            self.bots.append(TapBot(self.controller))

        self.engine = AnimationHitEngine(
            WINDOW_WIDTH, WINDOW_HEIGHT,
            on_objective_tapped=self.controller.submit_hit,
        )
        self.banner = None

    def join(self):
        """Seat both players and start both sessions."""
        room_id = self.backend.create_or_join_room(self.code, self.player_id)
        self.controller.init_session(room_id)
        self.opponent.init_session(room_id)
        self.backend.create_or_join_room(self.code, self.opponent.local_player_id)
        for bot in self.bots:
            bot.start()
        print(f"[CLIENT] Room {self.code} ({room_id})")

    def handle_notifications(self):
        for note in self.controller.drain_notifications():
            if isinstance(note, GameEnded):
                won = note.winner_id == self.player_id
                mine = note.winner_score if won else note.loser_score
                theirs = note.loser_score if won else note.winner_score
                self.banner = f"{'VICTORY' if won else 'DEFEAT'} {mine}-{theirs}"
                print(f"[CLIENT] {self.banner}")
            elif isinstance(note, SessionError):
                print(f"[CLIENT] {note.message}")

    def sync_objective(self):
        state = self.controller.state
        if state.status == SessionStatus.IN_GAME:
            self.engine.set_objective(state.current_objective)
        else:
            self.engine.set_objective(None)

    def run(self):
        """Main client loop."""
        self.running = True
        renderer = None
        if not self.headless:
            renderer = GameRenderer()
            self.engine.set_canvas_size(renderer.width, renderer.height)

        self.join()
        last = time.perf_counter()
        try:
            while self.running:
                if renderer:
                    dt = renderer.tick()
                    quit_requested, taps = renderer.poll_input()
                    if quit_requested:
                        break
                    for px, py in taps:
                        self.engine.on_pointer_down(px, py)
                else:
                    time.sleep(1.0 / 30)
                    now = time.perf_counter()
                    dt, last = now - last, now

                self.sync_objective()
                if self.engine.frame_pending:
                    self.engine.tick(dt)
                self.handle_notifications()

                if renderer:
                    renderer.render(self.engine, self.controller.state,
                                    self.player_id, self.banner)
                elif self.controller.state.status == SessionStatus.FINISHED \
                        and self.banner:
                    break

        except KeyboardInterrupt:
            print("\n[CLIENT] Interrupted")
        finally:
            self.running = False
            for bot in self.bots:
                bot.stop()
            self.controller.leave_session()
            self.opponent.leave_session()
            if renderer:
                renderer.close()

            self.controller.metrics.save(f'session_{self.player_id}_metrics.json')
            summary = self.controller.metrics.get_summary()
            if summary:
                print(f"[CLIENT] Metrics summary: {summary}")


def main():
    """Entry point for local play."""
    import argparse
    parser = argparse.ArgumentParser(description='Tap Duel local play')
    parser.add_argument('--code', default='1234', help='4-digit room code')
    parser.add_argument('--player', default='you', help='Local player id')
    parser.add_argument('--rounds', type=int, default=DEFAULT_MAX_ROUNDS,
                        help='Rounds per match')
    parser.add_argument('--headless', action='store_true',
                        help='Run bot vs bot without a window')
    parser.add_argument('--verbose', action='store_true',
                        help='Print session and backend logs')
    args = parser.parse_args()

    client = LocalPlayClient(
        code=args.code, player_id=args.player, max_rounds=args.rounds,
        headless=args.headless, verbose=args.verbose
    )
    client.run()


if __name__ == '__main__':
    main()
