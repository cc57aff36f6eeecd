"""Tests for the command-line entry point."""

import argparse
import json

import pytest

import analyze_processes
from batch_analysis import LogEvent, ProgressEvent, RetryEvent
from utils import config as config_module
from utils.analysis_cache import AnalysisCache
from utils.records import AnalysisRecord


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "_config_cache", None)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"output": {"directory": str(tmp_path / "out")}}), encoding="utf-8")
    return path


def make_args(config_file, **overrides):
    values = dict(config=str(config_file), output_dir=None, batch_size=None, dev_mode=False,
                  all=False, show=None, list_processes=False, verbose=False)
    values.update(overrides)
    return argparse.Namespace(**values)


def test_print_event(capsys):
    analyze_processes.print_event(LogEvent("info", "Processing batch 1/2 (3 processes)..."))
    analyze_processes.print_event(RetryEvent("OpenRouter", 1, 3))
    analyze_processes.print_event(ProgressEvent(1, 2, 3))
    analyze_processes.print_event(LogEvent("error", "Batch analysis failed: boom"))

    captured = capsys.readouterr()
    assert "Processing batch 1/2" in captured.out
    assert "OpenRouter retry attempt 1/3..." in captured.out
    assert "[1/2]" in captured.out
    assert "Batch analysis failed: boom" in captured.err


def test_overrides_apply(config_file, tmp_path):
    args = make_args(config_file, output_dir=str(tmp_path / "custom"), batch_size=8)
    config = analyze_processes.load_config_with_overrides(args)

    assert config["output"]["directory"] == str(tmp_path / "custom")
    assert config["batching"]["target_batch_size"] == 8


def test_show_filters_by_name(config_file, tmp_path, capsys):
    cache = AnalysisCache(str(tmp_path / "out" / "analysis_cache.json"))
    cache.put(AnalysisRecord("chrome.exe", "Safe", "Browser", "Keep - Required for system"))
    cache.put(AnalysisRecord("junk.exe", "Bloat", "Adware", "Safe to terminate"))

    analyze_processes.cmd_show(make_args(config_file, show="CHROME.EXE"))

    out = capsys.readouterr().out
    assert "chrome.exe" in out
    assert "junk.exe" not in out
    assert "1 records" in out


def test_analyze_without_keys_exits(config_file, monkeypatch, capsys):
    for var in ("OPENROUTER_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(analyze_processes, "set_run_logfile", lambda path: None)
    monkeypatch.setattr(config_module, "_config_cache", {
        "output": {"directory": str(config_file.parent / "out")},
        "models": {
            "openrouter-flash": {"platform": "openrouter", "model": "m"},
            "gemini-flash": {"platform": "gemini", "model": "m"},
        },
    })

    with pytest.raises(SystemExit) as excinfo:
        analyze_processes.cmd_analyze(make_args(config_file))

    assert excinfo.value.code == 1
    assert "No API key configured" in capsys.readouterr().err
