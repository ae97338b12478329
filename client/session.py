"""
Session controller: the single owner of the local SessionState.

Three producers run concurrently (event stream, snapshot stream, lobby
poller) and one consumer (the UI). Every write goes through _apply(), which
holds the session lock for the whole read-reconcile-replace step, so no
producer can observe or leave behind a half-applied state.
"""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from common.backend import BackendError
from common.config import (
    SETTLE_DELAY, SEED_RETRIES, SEED_RETRY_DELAY, POLL_INTERVAL, HIT_WORKERS
)
from common.events import GameEnded, GameEvent, SessionError, parse_event
from common.metrics_logger import MetricsLogger
from common.objective import DEFAULT_REFERENCE
from common.snapshot import RoomSnapshot, SessionState, SessionStatus
from client.polling import PollingFallback
from client.reconciliation import Reconciler


class SessionController:
    """
    Keeps one room's local state consistent with the backend.

    Args:
        backend: a common.backend.RoomBackend
        local_player_id: id of the player on this device
        reference: ReferenceFrame for spawn payloads without their own
    """

    def __init__(self, backend, local_player_id: str, reference=None,
                 settle_delay: float = SETTLE_DELAY,
                 poll_interval: float = POLL_INTERVAL,
                 seed_retries: int = SEED_RETRIES,
                 seed_retry_delay: float = SEED_RETRY_DELAY,
                 metrics: MetricsLogger = None, verbose: bool = True):
        self.backend = backend
        self.local_player_id = local_player_id
        self.reference = reference or DEFAULT_REFERENCE
        self.settle_delay = settle_delay
        self.seed_retries = max(1, seed_retries)
        self.seed_retry_delay = seed_retry_delay
        self.verbose = verbose
        self.metrics = metrics or MetricsLogger()

        self.room_id = None
        self.reconciler = Reconciler()
        self.seeded = threading.Event()

        self._lock = threading.RLock()
        self._state = SessionState.initial(local_player_id)
        self._notifications = queue.Queue()
        self._last_ended = None
        self._listeners = []
        self._subscriptions = []
        self._threads = []
        self._closed = threading.Event()
        self._hit_pool = ThreadPoolExecutor(max_workers=HIT_WORKERS,
                                            thread_name_prefix='hit-submit')

        self.poller = PollingFallback(
            fetch=self.fetch_snapshot,
            current_state=lambda: self.state,
            apply=lambda snapshot: self.on_remote_snapshot(snapshot, 'poll'),
            interval=poll_interval,
            metrics=self.metrics,
            verbose=verbose,
        )

    def _log(self, msg: str):
        """Print a message if verbose mode is enabled."""
        if self.verbose:
            print(msg, flush=True)

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def add_listener(self, callback):
        """Call *callback(state)* after every applied update."""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback):
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _apply(self, incoming):
        """The single update path. Returns the new state, or None if closed."""
        with self._lock:
            if self._closed.is_set():
                return None
            started = time.perf_counter()
            new_state, notification = self.reconciler.reconcile(
                self._state, incoming
            )
            self._state = new_state
            if isinstance(notification, GameEnded):
                # a re-delivered END repeats the result already announced
                if notification == self._last_ended:
                    notification = None
                else:
                    self._last_ended = notification
            if notification is not None:
                self._enqueue(notification)
            self.metrics.log_reconcile_time(
                (time.perf_counter() - started) * 1000.0
            )
            for listener in list(self._listeners):
                try:
                    listener(new_state)
                except Exception as exc:
                    self._log(f"[SESSION] Listener {listener!r} failed: {exc!r}")
            return new_state

    # -- notifications ---------------------------------------------------------

    def _enqueue(self, notification):
        with self._lock:
            if self._closed.is_set():
                return
            self._notifications.put(notification)
        self.metrics.log_notification(type(notification).__name__)

    def get_notification(self, timeout: float = None):
        """Next pending notification; None if none arrives within *timeout*."""
        try:
            return self._notifications.get(block=timeout is not None,
                                           timeout=timeout)
        except queue.Empty:
            return None

    def drain_notifications(self) -> list:
        """Take every pending notification."""
        pending = []
        while True:
            try:
                pending.append(self._notifications.get_nowait())
            except queue.Empty:
                return pending

    # -- lifecycle -------------------------------------------------------------

    def init_session(self, room_id: str):
        """
        Subscribe to both push channels, then seed state with one fetch.

        Subscriptions are established before the seed fetch so that a push
        racing the fetch is not lost.
        """
        with self._lock:
            if self._closed.is_set():
                self._log("[SESSION] init_session ignored, session was left")
                return
            if self.room_id is not None:
                raise RuntimeError(f"Session already bound to {self.room_id}")
            self.room_id = room_id

        self._log(f"[SESSION] Joining room {room_id} "
                  f"as {self.local_player_id}")

        events = self.backend.subscribe_events(room_id)
        snapshots = self.backend.subscribe_snapshots(room_id)
        with self._lock:
            self._subscriptions = [events, snapshots]
            if self._closed.is_set():
                events.cancel()
                snapshots.cancel()
                return

        self._spawn(self._consume, events, self.on_remote_event, 'events')
        self._spawn(self._consume, snapshots, self.on_remote_snapshot,
                    'snapshots')
        self._spawn(self._seed, name='seed')

    def _spawn(self, target, *args, name: str = None):
        thread = threading.Thread(target=target, args=args,
                                  name=f"session-{name or args[-1]}",
                                  daemon=True)
        self._threads.append(thread)
        thread.start()

    def _consume(self, subscription, handler, name: str):
        for item in subscription:
            if self._closed.is_set():
                break
            try:
                handler(item)
            except Exception as exc:
                self._log(f"[SESSION] Dropping {name} item after error: {exc!r}")
        self._log(f"[SESSION] {name} stream closed")

    def _seed(self):
        if self._closed.wait(self.settle_delay):
            return

        snapshot = None
        for attempt in range(1, self.seed_retries + 1):
            try:
                snapshot = self.fetch_snapshot()
                break
            except BackendError as exc:
                self._log(f"[SESSION] Seed fetch attempt {attempt} failed: {exc}")
                if attempt < self.seed_retries and \
                        self._closed.wait(self.seed_retry_delay):
                    return

        if self._closed.is_set():
            return
        if snapshot is None:
            self._enqueue(SessionError("Could not load room state"))
            return

        state = self.on_remote_snapshot(snapshot, 'seed')
        self.seeded.set()
        with self._lock:
            if state is not None and not self._closed.is_set() and \
                    state.status == SessionStatus.LOBBY:
                self._log("[SESSION] Room in lobby, starting fallback polling")
                self.poller.start()

    def leave_session(self):
        """Tear down both subscriptions and the poller. Idempotent."""
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            subscriptions, self._subscriptions = self._subscriptions, []

        for subscription in subscriptions:
            subscription.cancel()
        self.poller.stop()
        self._hit_pool.shutdown(wait=False)

        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current and thread.ident:
                thread.join(timeout=1.0)
        self._log(f"[SESSION] Left room {self.room_id}")

    # -- producers -------------------------------------------------------------

    def fetch_snapshot(self) -> RoomSnapshot:
        """Fetch and parse the room snapshot. Raises BackendError."""
        try:
            raw = self.backend.fetch_snapshot(self.room_id)
        except OSError as exc:
            raise BackendError(str(exc)) from exc
        try:
            return RoomSnapshot.from_dict(raw, self.local_player_id,
                                          self.reference)
        except ValueError as exc:
            raise BackendError(f"Malformed snapshot: {exc}") from exc

    def on_remote_event(self, event):
        """Apply one fast-channel event (wire dict or GameEvent)."""
        if not isinstance(event, GameEvent):
            try:
                event = parse_event(event, self.reference)
            except ValueError as exc:
                self._log(f"[SESSION] Dropping malformed event: {exc}")
                return None

        state = self._apply(event)
        if state is not None:
            self.metrics.log_event(event.event_type)
            self._log(f"[SESSION] {event.event_type} applied -> "
                      f"status={state.status} scores={state.scores}")
        return state

    def on_remote_snapshot(self, snapshot, source: str = 'push'):
        """Apply one full snapshot (wire dict or RoomSnapshot)."""
        if not isinstance(snapshot, RoomSnapshot):
            try:
                snapshot = RoomSnapshot.from_dict(snapshot, self.local_player_id,
                                                  self.reference)
            except ValueError as exc:
                self._log(f"[SESSION] Dropping malformed snapshot: {exc}")
                return None

        state = self._apply(snapshot)
        if state is None:
            return None
        self.metrics.log_snapshot(source, state.status, state.round)

        if state.status in (SessionStatus.IN_GAME, SessionStatus.FINISHED):
            self.poller.stop()
        return state

    # -- hits --------------------------------------------------------------------

    def submit_hit(self, objective_id: str, player_id: str = None):
        """
        Claim a hit without waiting for the backend.

        Local state is never touched here; a successful hit shows up later
        through the event and snapshot channels. Returns a Future resolving
        to True/False, or None if the session is not active.
        """
        player_id = player_id or self.local_player_id
        with self._lock:
            if self._closed.is_set() or self.room_id is None:
                return None
            return self._hit_pool.submit(self._send_hit, objective_id, player_id)

    def _send_hit(self, objective_id: str, player_id: str) -> bool:
        started = time.perf_counter()
        try:
            self.backend.submit_hit(self.room_id, objective_id, player_id)
            ok = True
        except (BackendError, OSError) as exc:
            self._log(f"[SESSION] Hit on {objective_id} rejected: {exc}")
            self._enqueue(SessionError("Could not register hit"))
            ok = False
        self.metrics.log_hit(objective_id, ok,
                             (time.perf_counter() - started) * 1000.0)
        return ok
