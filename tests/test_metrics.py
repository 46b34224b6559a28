"""
Unit tests for SigningMetrics.
"""

from imagesign.metrics import SigningMetrics, get_metrics


class TestSigningMetrics:
    """Tests for the metrics collector."""

    def test_counters(self):
        metrics = SigningMetrics()
        metrics.record_signature("png", signed=True)
        metrics.record_signature("gif", signed=False)
        metrics.record_verification(success=True)
        metrics.record_verification(success=False)
        metrics.record_verification(success=False)

        stats = metrics.get_stats()
        assert stats["signatures_signed"] == 1
        assert stats["signatures_unsigned"] == 1
        assert stats["verifications_failure"] == 2
        assert abs(stats["verification_success_rate"] - 1 / 3) < 1e-9

    def test_timers(self):
        metrics = SigningMetrics()
        with metrics.sign_timer():
            pass
        with metrics.verification_timer():
            pass

        stats = metrics.get_stats()
        assert stats["sign_durations_count"] == 1
        assert stats["verification_durations_count"] == 1
        assert stats["sign_durations_avg"] >= 0

    def test_prometheus_output(self):
        metrics = SigningMetrics(namespace="test")
        metrics.record_signature("jpeg", signed=True)
        text = metrics.get_prometheus_metrics().decode()

        assert 'test_signatures_total{format="jpeg",status="signed"} 1.0' in text
        assert "test_sign_duration_seconds" in text

    def test_instances_do_not_clash(self):
        """Each collector has its own registry."""
        first = SigningMetrics()
        second = SigningMetrics()
        first.record_verification(success=True)
        assert "verifications_success" not in second.get_stats()

    def test_global_instance(self):
        assert get_metrics() is get_metrics()
