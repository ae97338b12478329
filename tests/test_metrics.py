"""
Unit tests for session metrics collection.
"""

import json
import os
import tempfile
import unittest

from common.metrics_logger import MetricsLogger


class TestMetricsLogger(unittest.TestCase):

    def test_summary(self):
        metrics = MetricsLogger()
        metrics.log_event('SPAWN')
        metrics.log_event('SPAWN')
        metrics.log_event('SCORE')
        metrics.log_snapshot('seed', 'lobby', 0)
        metrics.log_snapshot('poll', 'lobby', 0)
        metrics.log_poll(1, False)
        metrics.log_poll(2, True)
        metrics.log_hit('o1', True, 4.0)
        metrics.log_hit('o2', False, 8.0)
        metrics.log_reconcile_time(0.5)
        metrics.log_reconcile_time(1.5)

        summary = metrics.get_summary()
        self.assertEqual(summary['events'], {'SPAWN': 2, 'SCORE': 1})
        self.assertEqual(summary['snapshots'], {'seed': 1, 'poll': 1})
        self.assertEqual(summary['polls'], 2)
        self.assertEqual(summary['polls_changed'], 1)
        self.assertEqual(summary['hits_ok'], 1)
        self.assertEqual(summary['hits_failed'], 1)
        self.assertEqual(summary['hit_latency_mean'], 6.0)
        self.assertEqual(summary['reconcile_time_mean'], 1.0)
        self.assertEqual(summary['reconcile_time_max'], 1.5)

    def test_empty_summary(self):
        self.assertEqual(MetricsLogger().get_summary(), {})

    def test_save(self):
        with tempfile.TemporaryDirectory() as tmp:
            metrics = MetricsLogger(log_dir=os.path.join(tmp, 'logs'))
            metrics.log_notification('GameEnded')
            path = metrics.save('run.json')
            with open(path) as f:
                data = json.load(f)
        self.assertEqual(data['notifications'][0]['kind'], 'GameEnded')


if __name__ == '__main__':
    unittest.main()
