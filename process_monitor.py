"""Process snapshot collection for analysis runs."""

import time
from typing import List

import psutil

from utils.records import ProcessSample


BYTES_PER_MB = 1024 * 1024

# Attributes to fetch per process
PROCESS_ATTRS = ["pid", "name", "cpu_percent", "memory_info"]


def _prime_cpu_counters() -> None:
    """First cpu_percent() call per process always returns 0.0."""
    for proc in psutil.process_iter():
        try:
            proc.cpu_percent(None)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue


def collect_process_samples(memory_metric: str = "private", sample_interval: float = 0.5) -> List[ProcessSample]:
    """
    Collect one sample per running process.

    Args:
        memory_metric: 'private' for the private working set (falls back to RSS
            where the platform does not report it) or 'rss'.
        sample_interval: Seconds between CPU priming and measurement.

    Processes that exit mid-poll, deny access, or are zombies are skipped.
    """
    if sample_interval > 0:
        _prime_cpu_counters()
        time.sleep(sample_interval)

    samples: List[ProcessSample] = []
    for proc in psutil.process_iter(attrs=PROCESS_ATTRS):
        try:
            with proc.oneshot():
                info = proc.info
                name = info.get("name") or ""
                if not name:
                    continue

                mem_info = info.get("memory_info")
                rss = mem_info.rss if mem_info else 0
                if memory_metric == "private":
                    # Windows reports 'private'; other platforms only have rss
                    memory = getattr(mem_info, "private", rss) if mem_info else 0
                else:
                    memory = rss

                samples.append(ProcessSample(
                    name=name,
                    cpu_percent=info.get("cpu_percent") or 0.0,
                    memory_mb=memory / BYTES_PER_MB,
                    working_set_mb=rss / BYTES_PER_MB,
                    pid=info.get("pid"),
                ))
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue

    return samples
