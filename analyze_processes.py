"""
Process Risk Analyzer - Main Entry Point

Snapshots the running processes, sends the ones without a cached verdict to
the configured AI providers in batches, and caches the results by process name.

Usage:
    python analyze_processes.py [options]
    python analyze_processes.py --dev-mode
    python analyze_processes.py --show [PROCESS_NAME]
    python analyze_processes.py --list-processes
"""

import sys
import os
import argparse
import asyncio
import logging

# Ensure project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from batch_analysis import BatchAnalysisCoordinator
from process_monitor import collect_process_samples
from utils.ai_client import GetLogfile, create_provider, set_run_logfile
from utils.analysis_cache import AnalysisCache
from utils.config import (
    get_batch_size,
    get_batching_strategy,
    get_cache_file,
    get_config,
    get_max_retries_per_model,
    get_memory_metric,
    get_output_directory,
    get_primary_model,
    get_retry_base_delay,
    get_secondary_model,
)
from utils.error_handling import (
    AnalysisCancelledError,
    BusyError,
    ConfigError,
    InputError,
    ModelError,
    PersistenceError,
)
from utils.process_batching import deduplicate_processes


def load_config_with_overrides(args):
    """Load config.json and apply command-line overrides."""
    config = get_config(args.config)

    if args.output_dir:
        config['output'] = config.get('output', {})
        config['output']['directory'] = args.output_dir
    if args.batch_size:
        config['batching'] = config.get('batching', {})
        config['batching']['target_batch_size'] = args.batch_size

    return config


def configure_logging(verbose):
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    ))
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for noisy in ("httpx", "openai", "anthropic", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def print_event(event):
    """Console listener for coordinator events."""
    if event.kind == 'log':
        stream = sys.stderr if event.type == 'error' else sys.stdout
        print(f"  {event.message}", file=stream)
    elif event.kind == 'provider-selected':
        print(f"  Provider: {event.provider}")
    elif event.kind == 'retry':
        print(f"  {event.provider} retry attempt {event.attempt}/{event.max_retries}...")
    elif event.kind == 'progress':
        print(f"  [{event.current_batch}/{event.total_batches}] batch of {event.batch_size} done")
    elif event.kind == 'complete':
        print(f"  Completed at {event.timestamp}: {event.count} processes analyzed")


def build_coordinator(config, cache):
    primary = create_provider(get_primary_model(config), config)
    secondary = create_provider(get_secondary_model(config), config)
    return BatchAnalysisCoordinator(
        primary, secondary, cache,
        listener=print_event,
        target_batch_size=get_batch_size(config),
        batching_strategy=get_batching_strategy(config),
        max_retries=get_max_retries_per_model(config),
        base_delay=get_retry_base_delay(config),
    )


def cmd_show(args):
    """Print cached records, optionally for one process name."""
    config = load_config_with_overrides(args)
    cache = AnalysisCache(get_cache_file(config))

    if args.dev_mode:
        records = cache.all_dev_mode_records()
    else:
        records = cache.all_records()
    if args.show:
        wanted = args.show.lower()
        records = [r for r in records if r.process_name.lower() == wanted]

    if not records:
        print("No cached analysis found.")
        return

    for record in sorted(records, key=lambda r: r.process_name.lower()):
        if args.dev_mode:
            print(f"{record.process_name:<35} {record.type:<12} {record.recommendation}")
            print(f"    {record.analysis}")
        else:
            print(f"{record.process_name:<35} {record.risk_level:<15} {record.recommendation}")
            print(f"    {record.description}")
    print(f"\n{len(records)} records ({cache.cache_file}).")


def cmd_list_processes(args):
    """Print the deduplicated process snapshot."""
    config = load_config_with_overrides(args)
    samples = deduplicate_processes(collect_process_samples(get_memory_metric(config)))

    print(f"{'Process Name':<35} {'CPU %':>7} {'Memory MB':>10} {'WS MB':>10}")
    print("-" * 65)
    for s in sorted(samples, key=lambda s: s.memory_mb, reverse=True):
        print(f"  {s.name:<33} {s.cpu_percent:>7.1f} {s.memory_mb:>10.0f} {s.working_set_mb or 0:>10.0f}")
    print(f"\n{len(samples)} unique process names.")


def cmd_analyze(args):
    """Main analysis pipeline."""
    config = load_config_with_overrides(args)
    output_dir = get_output_directory(config)
    cache = AnalysisCache(get_cache_file(config))
    set_run_logfile(GetLogfile(output_dir, config.get('log_stem', 'log')))

    coordinator = build_coordinator(config, cache)
    if not coordinator.is_initialized():
        print("Error: No API key configured. Set OPENROUTER_API_KEY or GEMINI_API_KEY, "
              "or add them to the api_keys section of config.json.", file=sys.stderr)
        sys.exit(1)

    print("Phase 1: Collecting process snapshot...")
    samples = collect_process_samples(get_memory_metric(config))
    pending = samples if args.all else coordinator.select_unanalyzed(samples, dev_mode=args.dev_mode)
    print(f"  {len(samples)} processes, {len(samples) - len(pending)} already analyzed, "
          f"{len(pending)} need analysis")

    if not pending:
        print("All processes already analyzed.")
        return

    mode = "Dev Mode analysis" if args.dev_mode else "risk analysis"
    print(f"\nPhase 2: Running {mode}...")
    if args.dev_mode:
        results = asyncio.run(coordinator.analyze_dev_mode(pending))
    else:
        results = asyncio.run(coordinator.analyze(pending))

    print(f"\nSuccessfully analyzed {len(results)} processes. Results cached in {cache.cache_file}")


def main():
    parser = argparse.ArgumentParser(
        description="Classify running processes with AI models and cache the verdicts."
    )

    parser.add_argument('--config', type=str, default='config.json',
                       help='Path to config.json')
    parser.add_argument('--output-dir', type=str, default=None,
                       help='Output directory for cache and logs (overrides config.json)')
    parser.add_argument('--batch-size', type=int, default=None,
                       help='Target processes per model call (overrides config.json)')
    parser.add_argument('--dev-mode', action='store_true',
                       help='Memory profiling analysis (private vs total working set)')
    parser.add_argument('--all', action='store_true',
                       help='Re-analyze processes that already have cached results')
    parser.add_argument('--show', nargs='?', const='', default=None, metavar='PROCESS_NAME',
                       help='Print cached analysis (all records, or one process)')
    parser.add_argument('--list-processes', action='store_true',
                       help='Print the current deduplicated process snapshot')
    parser.add_argument('--verbose', action='store_true',
                       help='Debug logging to stderr')

    args = parser.parse_args()
    configure_logging(args.verbose)

    try:
        if args.show is not None:
            cmd_show(args)
        elif args.list_processes:
            cmd_list_processes(args)
        else:
            cmd_analyze(args)
    except (ConfigError, InputError, ModelError, BusyError,
            AnalysisCancelledError, PersistenceError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
