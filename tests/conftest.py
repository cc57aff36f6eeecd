"""
Shared pytest fixtures for process analyzer tests.

Provides scripted providers so no test talks to a real model API.
"""

import inspect
import json

import pytest

from utils.ai_client import BaseAIProvider
from utils.analysis_cache import AnalysisCache
from utils.records import ProcessSample


def classification_reply(batch):
    """Well-formed model reply classifying every process in batch as Safe."""
    return json.dumps([
        {"n": p.name, "r": "Safe", "d": f"{p.name} description", "k": True}
        for p in batch
    ])


def dev_mode_reply(batch):
    return json.dumps([
        {"n": p.name, "type": "Normal", "analysis": "steady", "recommendation": "none"}
        for p in batch
    ])


class FakeProvider(BaseAIProvider):
    """
    Provider whose reply is produced by a responder function.

    The responder receives the batch of ProcessSample and returns the raw
    reply text, an exception instance to raise, or an awaitable of either.
    """

    def __init__(self, name, responder=None, initialized=True):
        self.name = name
        self.responder = responder or classification_reply
        self.analyze_calls = []
        self.dev_mode_calls = []
        self.attempts = 0
        self._batch = []
        super().__init__(api_key='test-key' if initialized else '', model=f'{name.lower()}-model')

    def _create_client(self, api_key):
        return object()

    async def analyze(self, processes, prompt):
        self.analyze_calls.append([p.name for p in processes])
        self._batch = processes
        return await super().analyze(processes, prompt)

    async def analyze_dev_mode(self, processes, prompt):
        self.dev_mode_calls.append([p.name for p in processes])
        self._batch = processes
        return await super().analyze_dev_mode(processes, prompt)

    async def _complete(self, prompt):
        self.attempts += 1
        result = self.responder(self._batch)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result


def make_samples(*names, cpu=1.0, memory=10.0):
    return [ProcessSample(name=n, cpu_percent=cpu, memory_mb=memory) for n in names]


async def no_sleep(delay):
    return None


@pytest.fixture
def cache(tmp_path):
    return AnalysisCache(str(tmp_path / "analysis_cache.json"))


@pytest.fixture
def events():
    """List that doubles as an event listener via .append."""
    return []
