from __future__ import annotations

import unittest

from lifeos.observability.telemetry import (
    counter,
    get_counter,
    get_latency_stats,
    reset_telemetry,
    snapshot_counters,
    time_block,
)


class TelemetryTests(unittest.TestCase):
    def setUp(self):
        reset_telemetry()

    def test_time_block_appends_ms_suffix(self):
        metric_name = "appdata.load.latency"

        with time_block(metric_name):
            pass

        stats = get_latency_stats(metric_name)
        self.assertEqual(stats["count"], 1)
        self.assertGreaterEqual(stats["p95"], 0.0)
        self.assertEqual(get_latency_stats("appdata.load.latency_ms")["count"], 1)

    def test_time_block_respects_existing_suffix(self):
        metric_name = "flow.total_ms"

        with time_block(metric_name):
            pass

        stats = get_latency_stats(metric_name)
        self.assertEqual(stats["count"], 1)

    def test_time_block_records_even_when_block_raises(self):
        with self.assertRaises(ValueError):
            with time_block("llm.call.latency"):
                raise ValueError("boom")

        self.assertEqual(get_latency_stats("llm.call.latency")["count"], 1)

    def test_unknown_metric_has_zero_stats(self):
        stats = get_latency_stats("never.seen")
        self.assertEqual(stats["count"], 0)
        self.assertEqual(stats["avg"], 0.0)

    def test_counter_increments(self):
        before = counter("test.counter", 0)
        counter("test.counter")
        after = counter("test.counter", 0)
        self.assertEqual(after, before + 1)

    def test_snapshot_filters_by_prefix(self):
        counter("cache.appdata.hit")
        counter("cache.appdata.hit")
        counter("llm.cache_hit")

        self.assertEqual(snapshot_counters("cache."), {"cache.appdata.hit": 2})
        self.assertEqual(get_counter("llm.cache_hit"), 1)

    def test_reset_clears_counters(self):
        counter("automation.task.started")
        reset_telemetry()
        self.assertEqual(get_counter("automation.task.started"), 0)


if __name__ == "__main__":
    unittest.main()
