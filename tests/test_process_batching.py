"""Tests for deduplication and batch partitioning."""

import math
from collections import Counter

import pytest

from conftest import make_samples
from utils.error_handling import InputError
from utils.process_batching import (
    TARGET_BATCH_SIZE,
    chunk_processes,
    create_process_batches,
    deduplicate_processes,
    split_into_batches,
)
from utils.records import ProcessSample


class TestDeduplicateProcesses:

    def test_empty_input(self):
        assert deduplicate_processes([]) == []

    def test_keeps_first_instance_ignoring_case(self):
        samples = [
            ProcessSample("chrome.exe", 5.0, 100.0),
            ProcessSample("Code.exe", 2.0, 300.0),
            ProcessSample("Chrome.EXE", 9.0, 900.0),
            ProcessSample("CHROME.exe", 1.0, 10.0),
        ]
        result = deduplicate_processes(samples)

        assert [p.name for p in result] == ["chrome.exe", "Code.exe"]
        assert result[0].cpu_percent == 5.0
        assert result[0].memory_mb == 100.0

    def test_already_unique_input_is_unchanged(self):
        samples = make_samples("a.exe", "b.exe", "c.exe")
        once = deduplicate_processes(samples)
        assert once == samples
        assert deduplicate_processes(once) == once


class TestCreateProcessBatches:

    def test_empty_input(self):
        assert create_process_batches([], 32) == []

    def test_default_target_is_32(self):
        assert TARGET_BATCH_SIZE == 32
        batches = create_process_batches(make_samples(*[f"p{i}.exe" for i in range(33)]))
        assert [len(b) for b in batches] == [17, 16]

    @pytest.mark.parametrize("count,target", [(1, 32), (32, 32), (33, 32), (70, 32), (100, 7), (5, 2)])
    def test_even_distribution(self, count, target):
        samples = make_samples(*[f"p{i}.exe" for i in range(count)])
        batches = create_process_batches(samples, target)

        sizes = [len(b) for b in batches]
        assert len(batches) == math.ceil(count / target)
        assert max(sizes) - min(sizes) <= 1
        assert Counter(p.name for b in batches for p in b) == Counter(p.name for p in samples)

    def test_round_robin_assignment(self):
        samples = make_samples("a", "b", "c", "d", "e")
        batches = create_process_batches(samples, 2)
        assert [[p.name for p in b] for b in batches] == [["a", "d"], ["b", "e"], ["c"]]

    def test_rejects_non_positive_target(self):
        with pytest.raises(InputError):
            create_process_batches(make_samples("a"), 0)


class TestSequentialChunking:

    def test_chunks_in_order(self):
        samples = make_samples("a", "b", "c", "d", "e")
        chunks = chunk_processes(samples, 2)
        assert [[p.name for p in c] for c in chunks] == [["a", "b"], ["c", "d"], ["e"]]

    def test_default_chunk_size(self):
        chunks = chunk_processes(make_samples(*[f"p{i}" for i in range(61)]))
        assert [len(c) for c in chunks] == [60, 1]

    def test_strategy_selection(self):
        samples = make_samples("a", "b", "c")
        assert [[p.name for p in b] for b in split_into_batches(samples, 2, "sequential")] == [["a", "b"], ["c"]]
        assert [[p.name for p in b] for b in split_into_batches(samples, 2, "round_robin")] == [["a", "c"], ["b"]]

    def test_unknown_strategy(self):
        with pytest.raises(InputError):
            split_into_batches(make_samples("a"), 2, "random")
