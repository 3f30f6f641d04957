"""
Unit tests for MapExecutor
"""

import os

import pytest

from mrengine.common.errors import RecordDecodeError
from mrengine.common.record_source import FileSplit, MemorySplit
from mrengine.common.types import Record
from mrengine.jobs.wordcount import combiner_function, map_function
from mrengine.worker.map_executor import MapExecutor, decode_record


class TestMapExecutorExecution:
    """Tests for applying the map function to a split"""

    def test_emits_one_pair_per_token(self):
        """Test word count map output"""
        split = MemorySplit(0, "the quick fox the lazy the")
        result = MapExecutor(0, split, map_function).execute()

        assert list(result.buffer) == [("the", 1), ("quick", 1), ("fox", 1),
                                       ("the", 1), ("lazy", 1), ("the", 1)]
        assert result.records_read == 1
        assert result.pairs_emitted == 6
        assert result.pairs_after_combine == 6
        assert result.cancelled is False

    def test_reads_file_split(self, sample_input_file):
        """Test mapping a file split"""
        split = FileSplit(0, sample_input_file, 0, os.path.getsize(sample_input_file))
        result = MapExecutor(3, split, map_function).execute()

        assert result.task_id == 3
        assert result.records_read == 5
        assert result.pairs_emitted == 32
        result.buffer.discard()

    def test_whitespace_runs_separate_tokens(self):
        """Test tabs and repeated spaces as separators"""
        split = MemorySplit(0, "a\t\tb   c \x0b d")
        result = MapExecutor(0, split, map_function).execute()

        assert [k for k, _ in result.buffer] == ["a", "b", "c", "d"]

    def test_tokens_are_case_sensitive_with_punctuation(self):
        """Test that tokens are not normalized"""
        split = MemorySplit(0, "The the dog. dog")
        result = MapExecutor(0, split, map_function).execute()

        assert [k for k, _ in result.buffer] == ["The", "the", "dog.", "dog"]

    def test_empty_split_produces_empty_buffer(self):
        """Test handling of an empty split"""
        result = MapExecutor(0, MemorySplit(0, ""), map_function).execute()

        assert result.records_read == 0
        assert len(result.buffer) == 0

    def test_map_function_receives_record_key(self):
        """Test that the offset key is passed to the map function"""
        seen = []

        def record_keys(key, value):
            seen.append(key)
            return []

        MapExecutor(0, MemorySplit(0, "ab\ncd\n"), record_keys).execute()

        assert seen == [0, 3]


class TestMapExecutorDecoding:
    """Tests for malformed record handling"""

    def test_undecodable_record_is_skipped(self):
        """Test that bad bytes skip one record without failing the task"""
        split = MemorySplit(0, b"good line\n\xff\xfe broken\nalso good\n")
        result = MapExecutor(0, split, map_function).execute()

        assert result.records_read == 3
        assert result.records_skipped == 1
        assert [k for k, _ in result.buffer] == ["good", "line", "also", "good"]

    def test_decode_record_raises_record_decode_error(self):
        """Test the decode helper"""
        with pytest.raises(RecordDecodeError) as exc_info:
            decode_record(4, Record(12, b"\xff"))

        assert exc_info.value.split_id == 4
        assert exc_info.value.offset == 12

    def test_decode_record_passes_text_through(self):
        """Test str values are returned unchanged"""
        assert decode_record(0, Record(0, "café")) == "café"
        assert decode_record(0, Record(0, "café".encode('utf-8'))) == "café"


class TestMapExecutorCombiner:
    """Tests for the optional combiner"""

    def test_combiner_pre_aggregates_buffer(self):
        """Test local combining of counts"""
        split = MemorySplit(0, "a b a\nb a")
        result = MapExecutor(0, split, map_function, combiner_function=combiner_function).execute()

        assert sorted(result.buffer) == [("a", 3), ("b", 2)]
        assert result.pairs_emitted == 5
        assert result.pairs_after_combine == 2

    def test_combiner_with_spilling(self, temp_dir):
        """Test combining after the buffer spilled to disk"""
        split = MemorySplit(0, "x y x y x\n" * 10)
        result = MapExecutor(0, split, map_function, combiner_function=combiner_function,
                             spill_threshold=4, spill_dir=temp_dir).execute()

        assert dict(result.buffer) == {"x": 30, "y": 20}
        assert result.spill_count > 0
        result.buffer.discard()
        assert os.listdir(temp_dir) == []


class TestMapExecutorCancellation:
    """Tests for cooperative stopping"""

    def test_stops_before_next_record(self):
        """Test that should_stop is checked per record"""
        calls = {'n': 0}

        def stop_after_two():
            calls['n'] += 1
            return calls['n'] > 2

        split = MemorySplit(0, "a\nb\nc\nd\n")
        result = MapExecutor(0, split, map_function, should_stop=stop_after_two).execute()

        assert result.cancelled is True
        assert result.records_read == 2
        assert [k for k, _ in result.buffer] == ["a", "b"]

    def test_cancelled_task_skips_combiner(self):
        """Test no combining happens after a stop"""
        combined = []

        def tracking_combiner(key, values):
            combined.append(key)
            return sum(values)

        result = MapExecutor(0, MemorySplit(0, "a a\n"), map_function,
                             combiner_function=tracking_combiner,
                             should_stop=lambda: True).execute()

        assert result.cancelled is True
        assert combined == []


class TestMapExecutorErrors:
    """Tests for map function failures"""

    def test_map_function_error_propagates_and_cleans_up(self, temp_dir):
        """Test that user errors propagate and spill files are removed"""
        def failing_map(key, value):
            if value == "boom":
                raise RuntimeError("map failed")
            for token in value.split():
                yield (token, 1)

        split = MemorySplit(0, "a b c d\nboom\n")
        executor = MapExecutor(0, split, failing_map, spill_threshold=2, spill_dir=temp_dir)

        with pytest.raises(RuntimeError, match="map failed"):
            executor.execute()
        assert os.listdir(temp_dir) == []
