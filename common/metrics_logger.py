"""
Metrics logging for session analysis.
Logs applied events and snapshots, lobby polls, hit submissions and
reconciliation cost.
"""

import json
import os
import threading
import time


class MetricsLogger:
    """Collects and persists session metrics."""

    def __init__(self, log_dir: str = 'analysis/logs'):
        self.log_dir = log_dir
        self.start_time = time.time()
        self._lock = threading.Lock()
        self.data = {
            'events': [],
            'snapshots': [],
            'polls': [],
            'hits': [],
            'reconcile_times': [],
            'notifications': [],
        }

    def _t(self) -> float:
        return round(time.time() - self.start_time, 4)

    def _append(self, key: str, record: dict):
        with self._lock:
            self.data[key].append(record)

    def log_event(self, event_type: str):
        self._append('events', {'t': self._t(), 'type': event_type})

    def log_snapshot(self, source: str, status: str, round: int):
        """source is 'push', 'seed' or 'poll'."""
        self._append('snapshots', {
            't': self._t(), 'source': source,
            'status': status, 'round': round
        })

    def log_poll(self, poll_count: int, changed: bool):
        self._append('polls', {
            't': self._t(), 'poll': poll_count, 'changed': changed
        })

    def log_hit(self, objective_id: str, ok: bool, latency_ms: float):
        self._append('hits', {
            't': self._t(), 'objective': objective_id,
            'ok': ok, 'latency_ms': round(latency_ms, 3)
        })

    def log_reconcile_time(self, duration_ms: float):
        self._append('reconcile_times', {
            't': self._t(), 'duration_ms': round(duration_ms, 4)
        })

    def log_notification(self, kind: str):
        self._append('notifications', {'t': self._t(), 'kind': kind})

    def save(self, filename: str = 'session_metrics.json') -> str:
        os.makedirs(self.log_dir, exist_ok=True)
        path = os.path.join(self.log_dir, filename)
        with self._lock:
            payload = json.dumps(self.data, indent=2)
        with open(path, 'w') as f:
            f.write(payload)
        print(f"[METRICS] Saved to {path}")
        return path

    def get_summary(self) -> dict:
        """Compute summary statistics."""
        with self._lock:
            data = {k: list(v) for k, v in self.data.items()}

        summary = {}
        if data['events']:
            by_type = {}
            for e in data['events']:
                by_type[e['type']] = by_type.get(e['type'], 0) + 1
            summary['events'] = by_type

        if data['snapshots']:
            by_source = {}
            for s in data['snapshots']:
                by_source[s['source']] = by_source.get(s['source'], 0) + 1
            summary['snapshots'] = by_source

        if data['polls']:
            summary['polls'] = len(data['polls'])
            summary['polls_changed'] = sum(1 for p in data['polls'] if p['changed'])

        hits = data['hits']
        if hits:
            latencies = sorted(h['latency_ms'] for h in hits)
            summary['hits_ok'] = sum(1 for h in hits if h['ok'])
            summary['hits_failed'] = sum(1 for h in hits if not h['ok'])
            summary['hit_latency_mean'] = sum(latencies) / len(latencies)
            summary['hit_latency_p95'] = latencies[int(len(latencies) * 0.95)]

        times = [r['duration_ms'] for r in data['reconcile_times']]
        if times:
            summary['reconcile_time_mean'] = sum(times) / len(times)
            summary['reconcile_time_max'] = max(times)

        return summary
