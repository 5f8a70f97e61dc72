"""
Site Configuration Package

This package provides the configuration module used by Site applications:
setting definitions, INI file and environment loading, typed sections, and
validated settings models for the broker and the database.
"""

from .config_module import SiteConfigModule, coerce_setting
from .config_section import ConfigSection
from .definitions import SITE_CONFIG_DEFINITIONS
from .settings import AMQPSettings, DatabaseSettings, RuntimeSettings, configure_logging

__all__ = [
    'SiteConfigModule',
    'ConfigSection',
    'SITE_CONFIG_DEFINITIONS',
    'coerce_setting',

    # Settings models
    'AMQPSettings',
    'DatabaseSettings',
    'RuntimeSettings',
    'configure_logging',
]
