"""
Timer Module Implementation

Profiles an application with named checkpoints recording elapsed time and
memory growth.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List

import psutil

from site_application.module_definition import ApplicationModule

logger = logging.getLogger(__name__)


@dataclass
class TimerCheckpoint:
    """A named checkpoint: time in milliseconds and memory in bytes."""
    name: str
    time: float
    memory_usage: int


def format_bytes(size: float) -> str:
    for unit in ('B', 'KB', 'MB', 'GB'):
        if abs(size) < 1024 or unit == 'GB':
            return f"{size:.0f} {unit}" if unit == 'B' else f"{size:.1f} {unit}"
        size /= 1024


class SiteTimerModule(ApplicationModule):
    """Timer module measuring execution time since initialization."""

    def __init__(self, app):
        super().__init__(app)
        self._process = psutil.Process()
        self._start_time = time.perf_counter() * 1000
        self._checkpoints: Dict[str, TimerCheckpoint] = {}
        self._started_checkpoints: Dict[str, TimerCheckpoint] = {}

    def init(self) -> None:
        self.reset()

    def get_time(self) -> float:
        """Get the execution time of this application in milliseconds."""
        return time.perf_counter() * 1000 - self._start_time

    def get_memory_usage(self) -> int:
        """Get the resident memory of this process in bytes."""
        return self._process.memory_info().rss

    def start_checkpoint(self, name: str) -> None:
        self._started_checkpoints[name] = TimerCheckpoint(
            name, self.get_time(), self.get_memory_usage()
        )

    def end_checkpoint(self, name: str) -> None:
        """End a started checkpoint. Unknown names are ignored."""
        started = self._started_checkpoints.pop(name, None)
        if started is None:
            return

        self._checkpoints[name] = TimerCheckpoint(
            name,
            self.get_time() - started.time,
            self.get_memory_usage() - started.memory_usage,
        )

    @property
    def checkpoints(self) -> Dict[str, TimerCheckpoint]:
        return dict(self._checkpoints)

    def get_summary(self) -> List[str]:
        """Get one line per ended checkpoint plus a total line."""
        lines = [
            f"{checkpoint.name}: {checkpoint.time:.3f} ms - {format_bytes(checkpoint.memory_usage)}"
            for checkpoint in self._checkpoints.values()
        ]
        lines.append(
            f"Total: {self.get_time():.3f} ms - {format_bytes(self.get_memory_usage())} (rss)"
        )
        return lines

    def log_summary(self, level: int = logging.DEBUG) -> None:
        for line in self.get_summary():
            logger.log(level, line)

    def reset(self) -> None:
        """Reset this timer. All checkpoints are cleared."""
        self._start_time = time.perf_counter() * 1000
        self._checkpoints = {}
        self._started_checkpoints = {}
