"""Tests for the pipeline profiler."""

import time

import pytest

from imu_gestures.profiler import PipelineProfiler


class TestPipelineProfiler:
    def test_stage_timing(self):
        profiler = PipelineProfiler()
        with profiler.stage("inference"):
            time.sleep(0.001)

        stats = profiler.get_stage_stats("inference")
        assert stats is not None
        assert stats.calls == 1
        assert stats.mean_ms >= 0.5  # at least ~1ms

    def test_multiple_calls(self):
        profiler = PipelineProfiler()
        for _ in range(10):
            with profiler.stage("segmentation"):
                pass
        assert profiler.get_stage_stats("segmentation").calls == 10

    def test_window_bounds_statistics(self):
        profiler = PipelineProfiler(window_size=4)
        profiler.observe("normalization", 100.0)
        for _ in range(4):
            profiler.observe("normalization", 1.0)

        stats = profiler.get_stage_stats("normalization")
        assert stats.calls == 5
        assert stats.max_ms == 1.0

    def test_percentile(self):
        profiler = PipelineProfiler()
        for ms in range(1, 101):
            profiler.observe("segmentation", float(ms))
        stats = profiler.get_stage_stats("segmentation")
        assert stats.mean_ms == pytest.approx(50.5)
        assert stats.p95_ms == pytest.approx(95.05)

    def test_overruns_against_sample_period(self):
        profiler = PipelineProfiler(budget_ms=31.25)
        profiler.observe("inference", 12.0)
        profiler.observe("inference", 45.0)
        profiler.observe("segmentation", 31.25)
        assert profiler.get_stage_stats("inference").overruns == 1
        assert profiler.overruns == 1

    def test_summary_only_lists_stages_that_ran(self):
        profiler = PipelineProfiler()
        with profiler.stage("normalization"):
            pass
        with profiler.stage("segmentation"):
            pass

        summary = profiler.summary()
        assert set(summary) == {"normalization", "segmentation"}
        assert summary["segmentation"]["calls"] == 1
        assert "p95_ms" in summary["normalization"]

    def test_unknown_stage_added(self):
        profiler = PipelineProfiler()
        with profiler.stage("replay"):
            pass
        assert profiler.get_stage_stats("replay").calls == 1

    def test_exception_still_timed(self):
        profiler = PipelineProfiler()
        with pytest.raises(RuntimeError):
            with profiler.stage("inference"):
                raise RuntimeError("model failed")
        assert profiler.get_stage_stats("inference").calls == 1

    def test_disabled(self):
        profiler = PipelineProfiler()
        profiler.enabled = False
        with profiler.stage("inference"):
            pass
        assert profiler.get_stage_stats("inference") is None

    def test_reset(self):
        profiler = PipelineProfiler()
        profiler.observe("inference", 50.0)
        profiler.reset()
        assert profiler.get_stage_stats("inference") is None
        assert profiler.overruns == 0
