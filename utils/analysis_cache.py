"""
Analysis Cache

Stores the model's verdict per process name so each executable is analyzed
once and the live process list can be annotated without further API calls.

The cache file holds two independent tables:
- process_analysis: risk classification records
- dev_mode_analysis: memory-profile records

Each table maps process_name to a record dict. Writes are upserts and the
store sets last_updated itself.
"""

import json
import logging
import os
import shutil
import tempfile
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .error_handling import PersistenceError
from .records import AnalysisRecord, DevModeAnalysisRecord, DEV_MODE_TYPES, RISK_LEVELS


logger = logging.getLogger(__name__)

ANALYSIS_TABLE = 'process_analysis'
DEV_MODE_TABLE = 'dev_mode_analysis'


class AnalysisCache:
    """
    JSON-file key/value store for analysis records.

    Process names are stored exactly as given; matching ignores case only
    upstream, in the batching step.
    """

    def __init__(self, cache_file: str = 'analysis_cache.json'):
        """
        Initialize the cache.

        Args:
            cache_file: Path to the cache file (default: 'analysis_cache.json')
        """
        self.cache_file = cache_file
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {ANALYSIS_TABLE: {}, DEV_MODE_TABLE: {}}
        self.load_cache()

    def get(self, process_name: str) -> Optional[AnalysisRecord]:
        entry = self.tables[ANALYSIS_TABLE].get(process_name)
        return AnalysisRecord.from_dict(entry) if entry is not None else None

    def put(self, record: AnalysisRecord):
        """
        Insert or replace the classification for record.process_name.

        Raises:
            PersistenceError: If the record is invalid or the file cannot be written
        """
        if record.risk_level not in RISK_LEVELS:
            raise PersistenceError(
                f"Invalid risk level '{record.risk_level}' for {record.process_name}. Expected one of {RISK_LEVELS}."
            )
        self._upsert(ANALYSIS_TABLE, record)

    def get_dev_mode(self, process_name: str) -> Optional[DevModeAnalysisRecord]:
        entry = self.tables[DEV_MODE_TABLE].get(process_name)
        return DevModeAnalysisRecord.from_dict(entry) if entry is not None else None

    def put_dev_mode(self, record: DevModeAnalysisRecord):
        """Insert or replace the memory profile for record.process_name."""
        if record.type not in DEV_MODE_TYPES:
            raise PersistenceError(
                f"Invalid dev mode type '{record.type}' for {record.process_name}. Expected one of {DEV_MODE_TYPES}."
            )
        self._upsert(DEV_MODE_TABLE, record)

    def all_records(self) -> List[AnalysisRecord]:
        return [AnalysisRecord.from_dict(d) for d in self.tables[ANALYSIS_TABLE].values()]

    def all_dev_mode_records(self) -> List[DevModeAnalysisRecord]:
        return [DevModeAnalysisRecord.from_dict(d) for d in self.tables[DEV_MODE_TABLE].values()]

    def _upsert(self, table: str, record):
        previous_timestamp = record.last_updated
        record.last_updated = datetime.now(timezone.utc).isoformat()
        entry = record.to_dict()
        previous = self.tables[table].get(entry['process_name'])
        self.tables[table][entry['process_name']] = entry
        try:
            self.save_cache()
        except PersistenceError:
            # Keep memory consistent with the file on disk.
            if previous is None:
                del self.tables[table][entry['process_name']]
            else:
                self.tables[table][entry['process_name']] = previous
            record.last_updated = previous_timestamp
            raise

    def load_cache(self):
        """
        Load both tables from the cache file.

        If the file is corrupted, a backup is created and loading stops
        so the file is never overwritten.
        """
        if not os.path.exists(self.cache_file):
            return

        try:
            with open(self.cache_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError('top-level value is not an object')
        except (json.JSONDecodeError, ValueError, OSError) as e:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_file = f"{self.cache_file}.corrupted.{timestamp}.bak"
            try:
                shutil.copy2(self.cache_file, backup_file)
                logger.error("Cache file %s is corrupted (%s). A backup has been saved to %s.",
                             self.cache_file, e, backup_file)
            except OSError as backup_error:
                logger.error("Cache file %s is corrupted (%s) and backup failed: %s",
                             self.cache_file, e, backup_error)
            raise PersistenceError(
                f"Cache file {self.cache_file} is corrupted. Rename or delete it to start fresh."
            ) from e

        for table in (ANALYSIS_TABLE, DEV_MODE_TABLE):
            self.tables[table] = data.get(table, {})
        logger.debug("Loaded %d analysis and %d dev mode records from %s",
                     len(self.tables[ANALYSIS_TABLE]), len(self.tables[DEV_MODE_TABLE]), self.cache_file)

    def save_cache(self):
        """
        Save cache to file using atomic write operation.

        On Windows, retries with exponential backoff if the file is locked
        by another process.

        Raises:
            PersistenceError: If the file cannot be written
        """
        max_retries = 5
        retry_delay = 0.1

        for attempt in range(max_retries):
            try:
                cache_dir = os.path.dirname(self.cache_file) or '.'
                os.makedirs(cache_dir, exist_ok=True)

                temp_fd, temp_path = tempfile.mkstemp(
                    dir=cache_dir,
                    prefix='.analysis_cache_tmp_',
                    suffix='.json',
                    text=True
                )
                try:
                    with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
                        json.dump(self.tables, f, indent=2, ensure_ascii=False)
                    os.replace(temp_path, self.cache_file)
                    return
                except Exception:
                    if os.path.exists(temp_path):
                        try:
                            os.remove(temp_path)
                        except OSError:
                            pass
                    raise

            except OSError as e:
                # Windows file locking - retry with backoff
                if os.name == 'nt' and attempt < max_retries - 1:
                    time.sleep(retry_delay)
                    retry_delay *= 2
                    continue
                raise PersistenceError(f"Failed to save cache to {self.cache_file}: {e}") from e

    def get_cache_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            dict: Record counts per table and the cache file path
        """
        return {
            'analysis_records': len(self.tables[ANALYSIS_TABLE]),
            'dev_mode_records': len(self.tables[DEV_MODE_TABLE]),
            'cache_file': self.cache_file,
        }
