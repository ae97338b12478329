"""
Cancellable push streams and a delivery simulator for testing them.
"""

import queue
import random
import threading
import time

_CLOSED = object()


class Subscription:
    """
    A push source consumed as a blocking iterator.

    The producer calls push(); the consumer iterates. cancel() ends the
    iteration (after anything already queued has been discarded) and runs
    the unsubscribe hook exactly once.
    """

    def __init__(self, name: str = '', on_cancel=None):
        self.name = name
        self._queue = queue.Queue()
        self._cancelled = threading.Event()
        self._on_cancel = on_cancel
        self._cancel_lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def push(self, item) -> bool:
        """Deliver an item. Returns False once the subscription is cancelled."""
        if self._cancelled.is_set():
            return False
        self._queue.put(item)
        return True

    def cancel(self):
        """Stop delivery and unsubscribe. Safe to call more than once."""
        with self._cancel_lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            self._queue.put(_CLOSED)
            hook, self._on_cancel = self._on_cancel, None
        if hook:
            hook(self)

    def get(self, timeout: float = None):
        """Next item, or None when cancelled or nothing arrived in time."""
        if self._cancelled.is_set():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED or self._cancelled.is_set():
            return None
        return item

    def __iter__(self):
        while True:
            item = self._queue.get()
            if item is _CLOSED or self._cancelled.is_set():
                return
            yield item

    def __repr__(self):
        state = 'cancelled' if self.cancelled else 'open'
        return f"Subscription({self.name!r}, {state})"


class DeliverySimulator:
    """
    Wraps a Subscription with simulated delivery conditions:
    loss, duplication and latency.
    """

    def __init__(self, subscription: Subscription, loss_rate: float = 0.0,
                 duplicate_rate: float = 0.0, min_latency: float = 0.0,
                 max_latency: float = 0.0, rng: random.Random = None):
        self.subscription = subscription
        self.loss_rate = loss_rate
        self.duplicate_rate = duplicate_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.rng = rng or random.Random()
        self.delayed = []
        self.dropped = 0
        self.duplicated = 0

    def push(self, item):
        """Send with simulated conditions."""
        if self.rng.random() < self.loss_rate:
            self.dropped += 1
            return
        copies = 1
        if self.rng.random() < self.duplicate_rate:
            copies = 2
            self.duplicated += 1

        for _ in range(copies):
            if self.min_latency > 0 or self.max_latency > 0:
                delay = self.rng.uniform(self.min_latency, self.max_latency)
                self.delayed.append((time.perf_counter() + delay, item))
            else:
                self.subscription.push(item)

    def flush(self, force: bool = False):
        """Deliver delayed items whose time has elapsed (all of them if forced)."""
        now = time.perf_counter()
        still_waiting = []
        for deliver_time, item in self.delayed:
            if force or now >= deliver_time:
                self.subscription.push(item)
            else:
                still_waiting.append((deliver_time, item))
        self.delayed = still_waiting
