"""
Built-in application modules.
"""

from .cache import SiteCacheModule
from .timer import SiteTimerModule

__all__ = ['SiteCacheModule', 'SiteTimerModule']
