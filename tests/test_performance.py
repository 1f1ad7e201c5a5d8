"""
Tests for the performance utilities.

Covers the bounded TTL cache, batch processing, parallel dispatch and
instrumentation helpers.
"""

import time
import random
import unittest
from unittest.mock import patch, MagicMock

from snakommit.performance import (
    Benchmark, BatchProcessor, Cache, Monitor, ParallelHelper, iter_batches
)


class TestCache(unittest.TestCase):
    """Test cases for the bounded TTL cache."""

    def test_set_and_get(self):
        """Test that stored values are returned while fresh."""
        cache = Cache(max_size=10, ttl=60)

        self.assertEqual(cache.set("test_key", "test_value"), "test_value")
        self.assertEqual(cache.get("test_key"), "test_value")
        self.assertIsNone(cache.get("non_existent"))

    def test_hit_miss_accounting(self):
        """Test hit/miss counters and derived hit rate."""
        cache = Cache(max_size=10, ttl=60)
        self.assertEqual(cache.hit_rate, 0.0)
        self.assertEqual(cache.stats()['hit_rate'], 0.0)

        cache.set('a', 1)        # writes count as misses
        cache.get('a')           # hit
        cache.get('missing')     # miss

        stats = cache.stats()
        self.assertEqual(stats['hits'], 1)
        self.assertEqual(stats['misses'], 2)
        self.assertAlmostEqual(stats['hit_rate'], 100 / 3)
        self.assertEqual(stats['size'], 1)
        self.assertEqual(stats['max_size'], 10)
        self.assertEqual(stats['ttl'], 60)

    @patch('snakommit.performance.time.time')
    def test_expired_entries_are_absent(self, mock_time):
        """Test that entries older than the TTL are treated as missing."""
        mock_time.return_value = 1000.0
        cache = Cache(max_size=10, ttl=5)
        cache.set('key', 'value')

        mock_time.return_value = 1005.0
        self.assertEqual(cache.get('key'), 'value')

        mock_time.return_value = 1005.1
        self.assertIsNone(cache.get('key'))
        self.assertEqual(len(cache), 0)
        self.assertEqual(cache.misses, 2)
        self.assertEqual(cache.hits, 1)

    @patch('snakommit.performance.time.time')
    def test_cleanup_evicts_oldest_first(self, mock_time):
        """Test that a full cache drops its oldest entries down to half capacity."""
        cache = Cache(max_size=10, ttl=1000)
        for i in range(10):
            mock_time.return_value = 1000.0 + i
            cache.set(f"key_{i}", i)

        mock_time.return_value = 1010.0
        cache.set("key_10", 10)

        self.assertEqual(len(cache), 6)
        for i in range(5):
            self.assertNotIn(f"key_{i}", cache)
        for i in range(5, 11):
            self.assertEqual(cache.get(f"key_{i}"), i)

    @patch('snakommit.performance.time.time')
    def test_cleanup_removes_expired_before_evicting(self, mock_time):
        """Test that expired entries are dropped first and fresh ones are kept."""
        cache = Cache(max_size=4, ttl=10)
        mock_time.return_value = 0.0
        cache.set('a', 1)
        cache.set('b', 2)
        mock_time.return_value = 20.0
        cache.set('c', 3)
        cache.set('d', 4)

        mock_time.return_value = 21.0
        cache.set('e', 5)

        self.assertEqual(len(cache), 3)
        self.assertNotIn('a', cache)
        self.assertNotIn('b', cache)
        for key in ('c', 'd', 'e'):
            self.assertIn(key, cache)

    @patch('snakommit.performance.time.time', return_value=500.0)
    def test_cleanup_tie_break_keeps_insertion_order(self, mock_time):
        """Test that equal timestamps are evicted in insertion order."""
        cache = Cache(max_size=4, ttl=100)
        for key in ('a', 'b', 'c', 'd'):
            cache.set(key, key)

        cache.set('e', 'e')

        self.assertEqual(len(cache), 3)
        self.assertNotIn('a', cache)
        self.assertNotIn('b', cache)
        self.assertIn('c', cache)

    def test_size_stays_bounded(self):
        """Test that inserting more items than max_size keeps the cache bounded."""
        cache = Cache(max_size=5, ttl=60)
        for i in range(10):
            cache.set(f"key_{i}", f"value_{i}")

        self.assertLessEqual(cache.stats()['size'], 5)

    def test_invalidate_and_clear(self):
        """Test removal of single keys and of everything."""
        cache = Cache(max_size=10, ttl=60)
        cache.set('a', 1)
        cache.set('b', 2)

        cache.invalidate('a')
        cache.invalidate('does-not-exist')
        self.assertIsNone(cache.get('a'))
        self.assertEqual(cache.get('b'), 2)

        hits, misses = cache.hits, cache.misses
        cache.clear()
        self.assertEqual(cache.stats()['size'], 0)
        self.assertEqual((cache.hits, cache.misses), (hits, misses))

        cache.reset_stats()
        self.assertEqual((cache.hits, cache.misses), (0, 0))


class TestBatchProcessor(unittest.TestCase):
    """Test cases for batch processing."""

    def test_process_in_batches(self):
        """Test batch sizes, result order and statistics."""
        processor = BatchProcessor(3)
        seen_batches = []

        def worker(batch):
            seen_batches.append(list(batch))
            return [item * 10 for item in batch]

        result = processor.process(list(range(1, 11)), worker)

        self.assertEqual([len(batch) for batch in seen_batches], [3, 3, 3, 1])
        self.assertEqual(result, [item * 10 for item in range(1, 11)])

        stats = processor.stats()
        self.assertEqual(stats['batch_size'], 3)
        self.assertEqual(stats['total_processed'], 10)
        self.assertEqual(stats['batch_count'], 4)
        self.assertAlmostEqual(stats['average_batch_size'], 2.5)

    def test_batch_size_override_and_accumulated_stats(self):
        """Test per-call batch size and stats accumulating across calls."""
        processor = BatchProcessor(100)
        processor.process(['a', 'b', 'c', 'd'], lambda batch: batch, batch_size=2)
        processor.process(['e'], lambda batch: [])

        self.assertEqual(processor.batch_count, 3)
        self.assertEqual(processor.total_processed, 5)

    def test_empty_items(self):
        """Test that empty input yields nothing and leaves stats untouched."""
        processor = BatchProcessor(3)
        worker = MagicMock(return_value=[])

        self.assertEqual(processor.process([], worker), [])
        worker.assert_not_called()
        self.assertEqual(processor.stats()['batch_count'], 0)
        self.assertEqual(processor.stats()['average_batch_size'], 0.0)

    def test_invalid_batch_size(self):
        """Test that non-positive batch sizes are rejected."""
        with self.assertRaises(ValueError):
            BatchProcessor(0)
        with self.assertRaises(ValueError):
            list(iter_batches([1, 2], 0))


class TestParallelHelper(unittest.TestCase):
    """Test cases for the parallel dispatch helper."""

    def setUp(self):
        ParallelHelper._available = None
        self.addCleanup(setattr, ParallelHelper, '_available', None)

    def test_processor_count(self):
        """Test that the processor count is a positive integer."""
        count = ParallelHelper.processor_count()
        self.assertIsInstance(count, int)
        self.assertGreater(count, 0)

    def test_processor_count_fallback(self):
        """Test the conservative default when the count cannot be determined."""
        mock_os = MagicMock(spec=['cpu_count'])
        mock_os.cpu_count.return_value = None
        with patch('snakommit.performance.os', mock_os):
            self.assertEqual(ParallelHelper.processor_count(), 2)

    def test_availability_is_resolved_once(self):
        """Test that availability is detected lazily and then cached."""
        with patch.object(ParallelHelper, 'processor_count', return_value=1):
            self.assertFalse(ParallelHelper.available())
        with patch.object(ParallelHelper, 'processor_count', return_value=8):
            self.assertFalse(ParallelHelper.available())

    def test_sequential_path(self):
        """Test processing below the threshold."""
        items = list(range(1, 11))
        result = ParallelHelper.process(items, lambda item: item * 2, threshold=100)
        self.assertEqual(result, [item * 2 for item in items])

    def test_parallel_path_preserves_order(self):
        """Test that results come back in input order from worker threads."""
        items = list(range(40))
        random.shuffle(items)

        def slow_double(item):
            time.sleep(random.uniform(0, 0.005))
            return item * 2

        with patch.object(ParallelHelper, 'available', return_value=True):
            result = ParallelHelper.process(items, slow_double, threshold=5, workers=4)

        self.assertEqual(result, [item * 2 for item in items])

    def test_parallel_path_propagates_errors(self):
        """Test that an exception raised by a worker reaches the caller."""
        def fail_on_three(item):
            if item == 3:
                raise RuntimeError("boom")
            return item

        with patch.object(ParallelHelper, 'available', return_value=True):
            with self.assertRaises(RuntimeError):
                ParallelHelper.process(list(range(10)), fail_on_three, threshold=2, workers=2)


class TestMonitor(unittest.TestCase):
    """Test cases for timing instrumentation."""

    def test_measure_and_report(self):
        """Test accumulation per label and report formatting."""
        monitor = Monitor()

        with monitor.measure('test_operation'):
            time.sleep(0.01)
        with monitor.measure('test_operation'):
            pass

        report = monitor.report()
        self.assertEqual(len(report), 1)
        self.assertIn('test_operation', report[0])
        self.assertIn('2 calls', report[0])
        self.assertEqual(monitor.stats()['test_operation']['count'], 2)

        monitor.reset()
        self.assertEqual(monitor.report(), [])

    def test_measure_records_failures(self):
        """Test that a failing block is timed and the error propagates."""
        monitor = Monitor()
        with self.assertRaises(ValueError):
            with monitor.measure('failing'):
                raise ValueError("bad")

        self.assertIn('1 calls', monitor.report()[0])

    def test_report_sorted_by_total_time(self):
        """Test that the slowest label is reported first."""
        monitor = Monitor()
        with monitor.measure('fast'):
            pass
        with monitor.measure('slow'):
            time.sleep(0.02)

        self.assertTrue(monitor.report()[0].startswith('slow'))


class TestBenchmark(unittest.TestCase):
    """Test cases for benchmarking helpers."""

    def test_run(self):
        """Test warm-up call and result keys."""
        func = MagicMock()
        result = Benchmark.run('test_benchmark', func, iterations=5)

        self.assertEqual(func.call_count, 6)
        self.assertEqual(result['label'], 'test_benchmark')
        self.assertEqual(result['iterations'], 5)
        self.assertAlmostEqual(result['avg'], result['real'] / 5)

    def test_compare(self):
        """Test that every implementation is benchmarked."""
        results = Benchmark.compare({
            'fast': lambda: None,
            'slow': lambda: time.sleep(0.002),
        }, iterations=3)

        self.assertEqual(set(results), {'fast', 'slow'})
        self.assertLess(results['fast']['avg'], results['slow']['avg'])


if __name__ == '__main__':
    unittest.main()
