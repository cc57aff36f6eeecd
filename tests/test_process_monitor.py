"""Tests for process snapshot collection."""

import contextlib
from types import SimpleNamespace

import psutil
import pytest

import process_monitor
from process_monitor import collect_process_samples


MB = 1024 * 1024


class FakeProcess:

    def __init__(self, info, error=None):
        self.info = info
        self.error = error

    @contextlib.contextmanager
    def oneshot(self):
        if self.error is not None:
            raise self.error
        yield


@pytest.fixture
def fake_processes(monkeypatch):
    procs = [
        FakeProcess({"pid": 10, "name": "chrome.exe", "cpu_percent": 12.5,
                     "memory_info": SimpleNamespace(rss=300 * MB, private=200 * MB)}),
        FakeProcess({"pid": 11, "name": "python", "cpu_percent": None,
                     "memory_info": SimpleNamespace(rss=50 * MB)}),
        FakeProcess({"pid": 12, "name": "", "cpu_percent": 0.0,
                     "memory_info": SimpleNamespace(rss=MB)}),
        FakeProcess({}, error=psutil.NoSuchProcess(13)),
        FakeProcess({}, error=psutil.AccessDenied(14)),
    ]
    monkeypatch.setattr(process_monitor.psutil, "process_iter", lambda *args, **kwargs: iter(procs))
    return procs


def test_private_metric(fake_processes):
    samples = collect_process_samples("private", sample_interval=0)

    assert [s.name for s in samples] == ["chrome.exe", "python"]
    chrome, python = samples
    assert chrome.memory_mb == 200
    assert chrome.working_set_mb == 300
    assert chrome.cpu_percent == 12.5
    assert chrome.pid == 10
    # No private figure on this platform, falls back to RSS
    assert python.memory_mb == 50
    assert python.cpu_percent == 0.0


def test_rss_metric(fake_processes):
    samples = collect_process_samples("rss", sample_interval=0)
    assert samples[0].memory_mb == 300
