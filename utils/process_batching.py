"""
Batching helpers for process analysis.

This module prepares a raw process snapshot for model calls:

Key functions:
- deduplicate_processes: Keeps one sample per case-insensitive process name
- create_process_batches: Distributes samples round-robin into even batches
- chunk_processes: Legacy sequential splitter (fixed chunk size)
"""

import math
from typing import List

from .error_handling import InputError
from .records import ProcessSample


TARGET_BATCH_SIZE = 32
LEGACY_CHUNK_SIZE = 60

BATCHING_STRATEGIES = ('round_robin', 'sequential')


def deduplicate_processes(processes: List[ProcessSample]) -> List[ProcessSample]:
    """
    Remove duplicate process names, ignoring case.

    Several PIDs of the same executable are analyzed (and billed) once, so only
    the first-seen instance of each name is kept, in first-seen order.

    Args:
        processes: Process samples, possibly with repeated names

    Returns:
        List[ProcessSample]: One sample per normalized name
    """
    if not processes:
        return []

    seen = set()
    deduplicated = []

    for process in processes:
        key = process.name.lower()
        if key not in seen:
            seen.add(key)
            deduplicated.append(process)

    return deduplicated


def create_process_batches(processes: List[ProcessSample],
                           target_batch_size: int = TARGET_BATCH_SIZE) -> List[List[ProcessSample]]:
    """
    Distribute processes evenly into ceil(N / target_batch_size) batches.

    Index i goes to batch i % num_batches, so batch sizes differ by at most one
    instead of leaving a small remainder batch at the end.

    Args:
        processes: Deduplicated process samples
        target_batch_size: Desired upper bound on batch size

    Returns:
        List of batches (empty list for empty input)
    """
    if target_batch_size <= 0:
        raise InputError(f"Batch size must be positive, got {target_batch_size}.")
    if not processes:
        return []

    num_batches = math.ceil(len(processes) / target_batch_size)
    batches: List[List[ProcessSample]] = [[] for _ in range(num_batches)]

    for index, process in enumerate(processes):
        batches[index % num_batches].append(process)

    return batches


def chunk_processes(processes: List[ProcessSample],
                    chunk_size: int = LEGACY_CHUNK_SIZE) -> List[List[ProcessSample]]:
    """Split processes into sequential slices of at most chunk_size."""
    if chunk_size <= 0:
        raise InputError(f"Chunk size must be positive, got {chunk_size}.")
    return [processes[i:i + chunk_size] for i in range(0, len(processes), chunk_size)]


def split_into_batches(processes: List[ProcessSample], target_batch_size: int = TARGET_BATCH_SIZE,
                       strategy: str = 'round_robin') -> List[List[ProcessSample]]:
    """Batch with the configured strategy ('round_robin' or 'sequential')."""
    if strategy == 'round_robin':
        return create_process_batches(processes, target_batch_size)
    if strategy == 'sequential':
        return chunk_processes(processes, target_batch_size)
    raise InputError(f"Unknown batching strategy '{strategy}'. Expected one of {BATCHING_STRATEGIES}.")
