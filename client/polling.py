"""
Lobby fallback polling: re-fetch the room snapshot on a fixed interval
until game truth is confirmed to be flowing through the push channels.
"""

import threading

from common.backend import BackendError
from common.config import POLL_INTERVAL
from common.snapshot import SessionStatus


class PollingFallback:
    """
    Serial, cancellable poll loop.

    Args:
        fetch: callable returning a RoomSnapshot (may raise BackendError)
        current_state: callable returning the controller's SessionState
        apply: callable feeding a RoomSnapshot into the controller
        interval: seconds between polls
    """

    def __init__(self, fetch, current_state, apply,
                 interval: float = POLL_INTERVAL, metrics=None,
                 verbose: bool = True):
        self.fetch = fetch
        self.current_state = current_state
        self.apply = apply
        self.interval = interval
        self.metrics = metrics
        self.verbose = verbose

        self.fetch_count = 0
        self._lock = threading.Lock()
        self._stop_event = None
        self._thread = None

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    @property
    def running(self) -> bool:
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
        return thread is not None and thread.is_alive() and \
            not stop_event.is_set()

    def start(self):
        """Start polling, superseding any loop already running."""
        stop_event = threading.Event()
        thread = threading.Thread(target=self._run, args=(stop_event,),
                                  name='lobby-poller', daemon=True)
        with self._lock:
            previous = (self._stop_event, self._thread)
            self._stop_event = stop_event
            self._thread = thread
        self._halt(*previous, join=True)
        thread.start()
        self._log(f"[POLL] Started (every {self.interval:.2f}s)")

    def stop(self):
        """Cancel the loop. Safe to call when not running or from the loop."""
        with self._lock:
            previous = (self._stop_event, self._thread)
            self._stop_event = None
            self._thread = None
        if self._halt(*previous):
            self._log("[POLL] Stopped")

    def _halt(self, stop_event, thread, join: bool = False) -> bool:
        if stop_event is None or stop_event.is_set():
            return False
        stop_event.set()
        if join and thread is not threading.current_thread() and thread.ident:
            thread.join(timeout=self.interval)
        return True

    def _run(self, stop_event: threading.Event):
        poll_count = 0
        while not stop_event.wait(self.interval):
            current = self.current_state()
            if current.status != SessionStatus.LOBBY:
                self._log(f"[POLL] Exiting, status is {current.status}")
                break

            if stop_event.is_set():
                break
            poll_count += 1
            self.fetch_count += 1
            try:
                snapshot = self.fetch()
            except BackendError as exc:
                self._log(f"[POLL] Poll #{poll_count} failed: {exc}")
                continue

            # stop() raced the fetch; the result belongs to a dead loop
            if stop_event.is_set():
                break

            changed = (snapshot.player_count != current.player_count or
                       snapshot.status != current.status)
            if self.metrics:
                self.metrics.log_poll(poll_count, changed)
            if changed:
                self._log(f"[POLL] Poll #{poll_count} detected change: "
                          f"players={snapshot.player_count} "
                          f"status={snapshot.status}")
                self.apply(snapshot)

            if snapshot.status != SessionStatus.LOBBY:
                break
