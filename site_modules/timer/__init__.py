"""
Timer Module

Checkpoint timing for profiling applications.
"""

from .timer_module import SiteTimerModule, TimerCheckpoint

__all__ = ['SiteTimerModule', 'TimerCheckpoint']
