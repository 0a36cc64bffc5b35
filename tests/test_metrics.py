"""Tests for Prometheus metrics."""

from imu_gestures.metrics import MetricsCollector


class TestMetricsCollector:
    def test_record_recognition(self):
        m = MetricsCollector()
        m.record_recognition("wave")
        m.record_recognition("wave")
        m.record_recognition("circle")
        assert m.recognition_counts == {"wave": 2, "circle": 1}

    def test_record_sample(self):
        m = MetricsCollector()
        m.record_sample(0.0001)
        m.record_sample(0.0002)
        assert m.samples_total == 2

    def test_record_example(self):
        m = MetricsCollector()
        m.record_example(True)
        m.record_example(True)
        m.record_example(False)
        assert m.example_counts == {"accepted": 2, "rejected": 1}

    def test_render_prometheus_format(self):
        m = MetricsCollector()
        m.record_recognition("wave")
        m.record_sample(0.0001)
        m.record_gesture_started()
        m.record_gesture_completed()
        m.record_training(0.004)
        m.set_connections(3)

        output = m.render()
        assert 'imu_gestures_recognitions_total{label="wave"} 1' in output
        assert "imu_gestures_samples_total 1" in output
        assert "imu_gestures_gestures_started_total 1" in output
        assert "imu_gestures_gestures_completed_total 1" in output
        assert "imu_gestures_trainings_total 1" in output
        assert "imu_gestures_training_error 0.004000" in output
        assert "imu_gestures_active_connections 3" in output
        assert "# HELP" in output
        assert "# TYPE" in output

    def test_no_training_error_before_training(self):
        assert "imu_gestures_training_error " not in MetricsCollector().render()

    def test_histogram_buckets(self):
        m = MetricsCollector()
        for _ in range(10):
            m.record_sample(0.0003)
        output = m.render()
        assert 'imu_gestures_sample_latency_seconds_bucket{le="0.0001"} 0' in output
        assert 'imu_gestures_sample_latency_seconds_bucket{le="0.0005"} 10' in output
        assert 'imu_gestures_sample_latency_seconds_bucket{le="+Inf"} 10' in output
        assert "imu_gestures_sample_latency_seconds_count 10" in output
