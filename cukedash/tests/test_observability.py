import unittest
from unittest import mock

from cukedash.observability import otel


class RebuildMetricsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.gauge = mock.MagicMock()
        patches = [
            mock.patch.object(otel, "_enabled", False),
            mock.patch.object(otel, "_prom_enabled", True),
            mock.patch.object(otel, "_prom_rebuild_counter", None),
            mock.patch.object(otel, "_prom_rebuild_latency_hist", None),
            mock.patch.object(otel, "_prom_indexed_features_gauge", self.gauge),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_successful_rebuild_sets_feature_gauge(self) -> None:
        otel.record_rebuild("success", 12.5, feature_count=3)

        self.gauge.set.assert_called_once_with(3)

    def test_empty_rebuild_resets_feature_gauge(self) -> None:
        otel.record_rebuild("success", 12.5, feature_count=3)
        otel.record_rebuild("empty", 1.0)

        self.assertEqual(self.gauge.set.call_args_list, [mock.call(3), mock.call(0)])

    def test_cancelled_rebuild_leaves_feature_gauge(self) -> None:
        otel.record_rebuild("cancelled", 4.0, feature_count=7)

        self.gauge.set.assert_not_called()


if __name__ == "__main__":
    unittest.main()
