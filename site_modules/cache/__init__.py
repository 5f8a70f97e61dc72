"""
Cache Module

An in-process cache backing the caching convenience methods of the
application.
"""

from .cache_module import SiteCacheModule

__all__ = ['SiteCacheModule']
