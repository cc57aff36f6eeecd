"""Tests for prompt building."""

from utils.process_prompts import (
    build_classification_prompt,
    build_dev_mode_prompt,
    format_dev_mode_csv,
    format_process_csv,
)
from utils.records import ProcessSample


SAMPLES = [
    ProcessSample("chrome.exe", 12.345, 512.6),
    ProcessSample("updater.exe", 0.0, 151.2, working_set_mb=300.4),
]


def test_process_csv_lines():
    assert format_process_csv(SAMPLES) == "chrome.exe,12.3,513\nupdater.exe,0.0,151"


def test_dev_mode_csv_uses_memory_when_working_set_missing():
    assert format_dev_mode_csv(SAMPLES) == "chrome.exe,12.3,513,513\nupdater.exe,0.0,151,300"


def test_classification_prompt_contents():
    prompt = build_classification_prompt(SAMPLES)

    for level in ("SystemCritical", "Safe", "Bloat", "Critical", "Unknown"):
        assert level in prompt
    assert "PID 0 or 4" in prompt
    assert "Security threats MUST have k false" in prompt
    assert "chrome.exe,12.3,513" in prompt
    assert '"n":"process_name.exe"' in prompt
    assert "no markdown code fences" in prompt
    assert prompt.endswith("Return JSON array only:")


def test_classification_prompt_is_deterministic():
    assert build_classification_prompt(SAMPLES) == build_classification_prompt(list(SAMPLES))


def test_dev_mode_prompt_contents():
    prompt = build_dev_mode_prompt(SAMPLES)

    for kind in ("Leak", "Inefficient", "Normal", "Suspicious"):
        assert kind in prompt
    assert "updater.exe,0.0,151,300" in prompt
    assert '"type":"Leak|Inefficient|Normal|Suspicious"' in prompt
    assert '"recommendation"' in prompt
