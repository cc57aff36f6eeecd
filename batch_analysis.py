"""
Batch Analysis Module

Drives a process snapshot through the AI providers:
1. Deduplicate process names and split them into even batches
2. Send each batch to the primary provider with retry, falling back to the secondary
3. Persist every returned record to the local analysis cache as soon as its batch completes

Progress is reported to an optional listener as one-way events.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

from utils.ai_client import BaseAIProvider, with_retry
from utils.analysis_cache import AnalysisCache
from utils.error_handling import (
    AnalysisCancelledError,
    BusyError,
    CombinedFallbackError,
    NotInitializedError,
    get_error_message,
)
from utils.process_batching import TARGET_BATCH_SIZE, deduplicate_processes, split_into_batches
from utils.process_prompts import build_classification_prompt, build_dev_mode_prompt
from utils.records import ProcessSample


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Events
# -----------------------------------------------------------------------------

@dataclass
class LogEvent:
    type: str       # 'info' or 'error'
    message: str
    kind = 'log'


@dataclass
class ProviderSelectedEvent:
    provider: str
    kind = 'provider-selected'


@dataclass
class RetryEvent:
    provider: str
    attempt: int
    max_retries: int
    kind = 'retry'


@dataclass
class ProgressEvent:
    current_batch: int
    total_batches: int
    batch_size: int
    kind = 'progress'


@dataclass
class CompleteEvent:
    count: int
    timestamp: str
    kind = 'complete'


def _ignore_event(event):
    pass


# -----------------------------------------------------------------------------
# Provider fallback
# -----------------------------------------------------------------------------

class FallbackOrchestrator:
    """
    Runs one batch against the primary provider, then the secondary.

    Each provider is wrapped in with_retry. An uninitialized primary is
    skipped without being called. The first success is returned as is;
    results from the two providers are never merged.
    """

    def __init__(self, primary: BaseAIProvider, secondary: BaseAIProvider, max_retries: int = 3,
                 base_delay: float = 1.0, emit: Optional[Callable[[Any], None]] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.primary = primary
        self.secondary = secondary
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.emit = emit or _ignore_event
        self.sleep = sleep

    async def analyze(self, processes: List[ProcessSample], prompt: str):
        return await self._run(lambda provider: provider.analyze(processes, prompt))

    async def analyze_dev_mode(self, processes: List[ProcessSample], prompt: str):
        return await self._run(lambda provider: provider.analyze_dev_mode(processes, prompt), label='Dev Mode')

    async def _run(self, call, label: str = ''):
        suffix = f' ({label})' if label else ''
        primary_error = None

        if self.primary.is_initialized():
            logger.info("Attempting analysis with %s (primary)%s", self.primary.name, suffix)
            self.emit(ProviderSelectedEvent(f'{self.primary.name}{suffix}'))
            try:
                return await self._with_retry(self.primary, call)
            except Exception as e:
                primary_error = e
                logger.warning("%s failed: %s. Falling back to %s.",
                               self.primary.name, get_error_message(e), self.secondary.name)

        logger.info("Attempting analysis with %s%s", self.secondary.name, suffix)
        fallback_label = f'{label} Fallback' if label else 'Fallback'
        self.emit(ProviderSelectedEvent(f'{self.secondary.name} ({fallback_label})'))
        try:
            return await self._with_retry(self.secondary, call)
        except Exception as e:
            raise CombinedFallbackError(
                self.primary.name, primary_error, self.secondary.name, e, label=label
            ) from e

    async def _with_retry(self, provider: BaseAIProvider, call):
        def on_retry(attempt, error):
            logger.info("%s retry attempt %d/%d...", provider.name, attempt, self.max_retries)
            self.emit(RetryEvent(provider.name, attempt, self.max_retries))

        return await with_retry(
            lambda: call(provider),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            on_retry=on_retry,
            sleep=self.sleep,
        )


# -----------------------------------------------------------------------------
# Coordinator
# -----------------------------------------------------------------------------

@dataclass
class _AnalysisMode:
    label: str
    build_prompt: Callable[[List[ProcessSample]], str]
    method: str         # FallbackOrchestrator coroutine name
    save: str           # AnalysisCache method name
    lookup: str


CLASSIFICATION_MODE = _AnalysisMode('', build_classification_prompt, 'analyze', 'put', 'get')
DEV_MODE = _AnalysisMode('Dev Mode', build_dev_mode_prompt, 'analyze_dev_mode', 'put_dev_mode', 'get_dev_mode')


class BatchAnalysisCoordinator:
    """
    Owns the single-flight state for batch analysis runs.

    At most one run (classification or dev mode) is active at a time; a
    second call while running fails with BusyError rather than queueing.
    The running flag is set before the first await and cleared on every
    exit path.
    """

    def __init__(self, primary: BaseAIProvider, secondary: BaseAIProvider, cache: AnalysisCache,
                 listener: Optional[Callable[[Any], None]] = None, target_batch_size: int = TARGET_BATCH_SIZE,
                 batching_strategy: str = 'round_robin', max_retries: int = 3, base_delay: float = 1.0,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.primary = primary
        self.secondary = secondary
        self.cache = cache
        self.listener = listener or _ignore_event
        self.target_batch_size = target_batch_size
        self.batching_strategy = batching_strategy
        self.orchestrator = FallbackOrchestrator(
            primary, secondary, max_retries=max_retries, base_delay=base_delay,
            emit=self._emit, sleep=sleep,
        )
        self._running = False
        self._cancel_requested = False

    def initialize_primary(self, api_key: str):
        self.primary.initialize(api_key)

    def initialize_secondary(self, api_key: str):
        self.secondary.initialize(api_key)

    def is_initialized(self) -> bool:
        """True once either provider has a credential."""
        return self.primary.is_initialized() or self.secondary.is_initialized()

    @property
    def is_running(self) -> bool:
        return self._running

    def cancel(self):
        """Stop the active run before its next batch. No-op when idle."""
        if self._running:
            logger.info("Cancellation requested")
            self._cancel_requested = True

    def select_unanalyzed(self, processes: List[ProcessSample], dev_mode: bool = False) -> List[ProcessSample]:
        """Samples whose name has no cached record yet."""
        lookup = getattr(self.cache, DEV_MODE.lookup if dev_mode else CLASSIFICATION_MODE.lookup)
        return [p for p in processes if lookup(p.name) is None]

    async def analyze(self, processes: List[ProcessSample]):
        """
        Classify processes and cache the results.

        Args:
            processes: Process samples, duplicates allowed

        Returns:
            List[AnalysisRecord]: Records from every batch, in batch order

        Raises:
            NotInitializedError: No provider has a credential
            BusyError: A run is already in progress
            CombinedFallbackError: Both providers failed for a batch; earlier batches stay cached
            AnalysisCancelledError: cancel() was called during the run
        """
        return await self._run(processes, CLASSIFICATION_MODE)

    async def analyze_dev_mode(self, processes: List[ProcessSample]):
        """Memory-profile processes and cache the results in the dev mode table."""
        return await self._run(processes, DEV_MODE)

    async def _run(self, processes: List[ProcessSample], mode: _AnalysisMode):
        if not self.is_initialized():
            raise NotInitializedError('No AI provider initialized. Please set an API key first.')
        if self._running:
            raise BusyError('Batch analysis already in progress')

        self._running = True
        self._cancel_requested = False
        prefix = f'[{mode.label}] ' if mode.label else ''

        try:
            unique_processes = deduplicate_processes(processes)
            duplicates = len(processes) - len(unique_processes)
            if duplicates > 0:
                self._log('info', f'{prefix}Deduplication: {len(processes)} process instances -> '
                                  f'{len(unique_processes)} unique process names '
                                  f'(removed {duplicates} duplicate instances)')

            if not unique_processes:
                return []

            batches = split_into_batches(unique_processes, self.target_batch_size, self.batching_strategy)
            if len(batches) > 1:
                self._log('info', f'{prefix}Split {len(unique_processes)} processes into {len(batches)} batches')

            all_results = []
            run_batch = getattr(self.orchestrator, mode.method)
            for index, batch in enumerate(batches, 1):
                if self._cancel_requested:
                    raise AnalysisCancelledError(
                        f'Analysis cancelled after {index - 1}/{len(batches)} batches '
                        f'({len(all_results)} processes analyzed)'
                    )

                self._log('info', f'{prefix}Processing batch {index}/{len(batches)} ({len(batch)} processes)...')
                results = await run_batch(batch, mode.build_prompt(batch))

                saved = self._save_results(results, mode)
                logger.info("%sSaved %d/%d analysis results to cache", prefix, saved, len(results))
                all_results.extend(results)
                self._emit(ProgressEvent(index, len(batches), len(batch)))

            self._emit(CompleteEvent(len(all_results), datetime.now(timezone.utc).isoformat()))
            return all_results

        except Exception as e:
            self._log('error', f'{prefix}Batch analysis failed: {get_error_message(e)}')
            raise
        finally:
            self._running = False
            self._cancel_requested = False

    def _save_results(self, results, mode: _AnalysisMode) -> int:
        save = getattr(self.cache, mode.save)
        saved = 0
        for record in results:
            try:
                save(record)
                saved += 1
            except Exception as e:
                logger.error("Failed to save analysis for %s: %s", record.process_name, e)
                self._log('error', f'Failed to save analysis for {record.process_name}: {get_error_message(e)}')
        return saved

    def _log(self, type_: str, message: str):
        if type_ == 'error':
            logger.error(message)
        else:
            logger.info(message)
        self._emit(LogEvent(type_, message))

    def _emit(self, event):
        try:
            self.listener(event)
        except Exception:
            logger.exception("Event listener raised while handling %s", getattr(event, 'kind', event))
