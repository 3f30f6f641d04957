"""
Unit tests for job metrics and counters.
"""

import json
import os
import shutil
import tempfile
import unittest

from mrengine.common.output_sink import OUTPUT_FILE_NAME
from mrengine.common.types import ReduceResult
from mrengine.coordinator.metrics import JobMetrics, MetricsCollector, format_counters
from mrengine.worker.intermediate_buffer import IntermediateBuffer
from mrengine.worker.map_executor import MapTaskResult
from mrengine.worker.reduce_executor import ReduceTaskResult


class TestJobMetrics(unittest.TestCase):
    def test_phase_times(self):
        metrics = JobMetrics(job_id="j", job_name="n", start_time=10.0, end_time=16.0,
                             map_phase_start=10.0, map_phase_end=13.0,
                             shuffle_phase_start=13.0, shuffle_phase_end=14.0,
                             reduce_phase_start=14.0, reduce_phase_end=16.0)

        self.assertEqual(metrics.total_time_seconds, 6.0)
        self.assertEqual(metrics.map_phase_time_seconds, 3.0)
        self.assertEqual(metrics.shuffle_phase_time_seconds, 1.0)
        self.assertEqual(metrics.reduce_phase_time_seconds, 2.0)

    def test_unfinished_phase_is_zero(self):
        metrics = JobMetrics(job_id="j", job_name="n", start_time=10.0, map_phase_start=10.0)

        self.assertEqual(metrics.map_phase_time_seconds, 0.0)
        self.assertEqual(metrics.total_time_seconds, 0.0)

    def test_combiner_reduction_ratio(self):
        metrics = JobMetrics(job_id="j", job_name="n", start_time=0.0, use_combiner=True,
                             map_output_records=100, combine_output_records=25)
        self.assertAlmostEqual(metrics.combiner_reduction_ratio, 0.75)

        metrics.use_combiner = False
        self.assertEqual(metrics.combiner_reduction_ratio, 0.0)

    def test_save_to_file(self):
        temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, temp_dir)
        path = os.path.join(temp_dir, "metrics.json")

        JobMetrics(job_id="j", job_name="n", start_time=1.0, end_time=3.0, failed_keys=2).save_to_file(path)
        with open(path) as f:
            data = json.load(f)

        self.assertEqual(data['job_id'], "j")
        self.assertEqual(data['failed_keys'], 2)
        self.assertEqual(data['total_time_seconds'], 2.0)


class TestMetricsCollector(unittest.TestCase):
    def setUp(self):
        self.collector = MetricsCollector()
        self.collector.start_job("job-1", "word count", use_combiner=True)

    def _map_result(self, task_id, records, skipped, emitted, combined):
        return MapTaskResult(task_id=task_id, buffer=IntermediateBuffer(f"map-{task_id}"),
                             records_read=records, records_skipped=skipped,
                             pairs_emitted=emitted, pairs_after_combine=combined)

    def test_map_counters_accumulate(self):
        self.collector.start_map_phase("job-1", 2)
        self.collector.record_map_task("job-1", self._map_result(0, 3, 1, 10, 4))
        self.collector.record_map_task("job-1", self._map_result(1, 2, 0, 6, 3))
        self.collector.end_map_phase("job-1")
        metrics = self.collector.get_metrics("job-1")

        self.assertEqual(metrics.num_map_tasks, 2)
        self.assertEqual(metrics.map_input_records, 5)
        self.assertEqual(metrics.skipped_records, 1)
        self.assertEqual(metrics.map_output_records, 16)
        self.assertEqual(metrics.combine_output_records, 7)
        self.assertGreaterEqual(metrics.map_phase_end, metrics.map_phase_start)

    def test_reduce_counters_accumulate(self):
        self.collector.start_reduce_phase("job-1", 1)
        result = ReduceTaskResult(task_id=0, results=[ReduceResult("a", 2), ReduceResult("c", 1)],
                                  failed_keys={"b": "boom"}, groups_processed=3)
        self.collector.record_reduce_task("job-1", result)
        metrics = self.collector.get_metrics("job-1")

        self.assertEqual(metrics.reduce_output_records, 2)
        self.assertEqual(metrics.failed_keys, 1)

    def test_end_job_measures_output(self):
        temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, temp_dir)
        with open(os.path.join(temp_dir, OUTPUT_FILE_NAME), 'w') as f:
            f.write("a\t1\n")

        self.collector.end_job("job-1", temp_dir, task_retries=3)
        metrics = self.collector.get_metrics("job-1")

        self.assertEqual(metrics.output_size_bytes, 4)
        self.assertEqual(metrics.task_retries, 3)
        self.assertGreater(metrics.peak_rss_bytes, 0)

    def test_unknown_job(self):
        self.collector.record_map_task("missing", self._map_result(0, 1, 0, 1, 1))
        self.assertIsNone(self.collector.get_metrics("missing"))

    def test_input_size(self):
        temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, temp_dir)
        path = os.path.join(temp_dir, "in.txt")
        with open(path, 'w') as f:
            f.write("hello world\n")

        self.collector.start_job("job-2", "sized", use_combiner=False, input_paths=[path, temp_dir])

        self.assertEqual(self.collector.get_metrics("job-2").input_size_bytes, 24)

    def test_input_size_expands_globs(self):
        temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, temp_dir)
        for name in ("a.txt", "b.txt", "c.log"):
            with open(os.path.join(temp_dir, name), 'w') as f:
                f.write("hello world\n")

        self.collector.start_job("job-3", "glob", use_combiner=False,
                                 input_paths=[os.path.join(temp_dir, "*.txt")])

        self.assertEqual(self.collector.get_metrics("job-3").input_size_bytes, 24)

    def test_input_size_of_missing_path_is_zero(self):
        self.collector.start_job("job-4", "missing", use_combiner=False,
                                 input_paths=["/nonexistent/input/*.txt"])

        self.assertEqual(self.collector.get_metrics("job-4").input_size_bytes, 0)


class TestFormatCounters(unittest.TestCase):
    def test_combiner_counter_only_when_enabled(self):
        metrics = JobMetrics(job_id="j", job_name="n", start_time=0.0, map_input_records=5,
                             map_output_records=32, combine_output_records=21)
        self.assertNotIn("Combine output records", format_counters(metrics))

        metrics.use_combiner = True
        lines = format_counters(metrics).splitlines()

        self.assertIn("    Map input records=5", lines)
        self.assertIn("    Combine output records=21", lines)
        self.assertEqual(lines[-1], "    Peak memory (MB)=0.0")


if __name__ == '__main__':
    unittest.main()
