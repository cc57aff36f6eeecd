"""
Record types shared by the batch analysis pipeline.

ProcessSample is produced by the telemetry snapshot each time it runs and is
never persisted. AnalysisRecord and DevModeAnalysisRecord are the units
stored in the local analysis cache, keyed by process name.
"""

from dataclasses import dataclass
from typing import Optional


RISK_LEVELS = ('SystemCritical', 'Safe', 'Bloat', 'Unknown', 'Critical')
DEV_MODE_TYPES = ('Leak', 'Inefficient', 'Normal', 'Suspicious')

KEEP_RECOMMENDATION = 'Keep - Required for system'
TERMINATE_RECOMMENDATION = 'Safe to terminate'


@dataclass
class ProcessSample:
    """One running process as seen by a single poll."""
    name: str
    cpu_percent: float
    memory_mb: float                          # private working set (or RSS, per config)
    working_set_mb: Optional[float] = None    # total working set, dev mode only
    pid: Optional[int] = None


@dataclass
class AnalysisRecord:
    """Risk classification for one process name."""
    process_name: str
    risk_level: str
    description: str
    recommendation: str
    last_updated: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'process_name': self.process_name,
            'risk_level': self.risk_level,
            'description': self.description,
            'recommendation': self.recommendation,
            'last_updated': self.last_updated,
        }

    @staticmethod
    def from_dict(d: dict) -> 'AnalysisRecord':
        return AnalysisRecord(
            process_name=d['process_name'],
            risk_level=d['risk_level'],
            description=d.get('description', ''),
            recommendation=d.get('recommendation', ''),
            last_updated=d.get('last_updated'),
        )


@dataclass
class DevModeAnalysisRecord:
    """Memory-profile classification for one process name."""
    process_name: str
    type: str
    analysis: str
    recommendation: str
    last_updated: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'process_name': self.process_name,
            'type': self.type,
            'analysis': self.analysis,
            'recommendation': self.recommendation,
            'last_updated': self.last_updated,
        }

    @staticmethod
    def from_dict(d: dict) -> 'DevModeAnalysisRecord':
        return DevModeAnalysisRecord(
            process_name=d['process_name'],
            type=d['type'],
            analysis=d.get('analysis', ''),
            recommendation=d.get('recommendation', ''),
            last_updated=d.get('last_updated'),
        )
