"""
Site Application System

This package provides the application base class and its module system.
Each module declares the features it provides and depends on, and the
application registers modules so that dependencies are always loaded first.
"""

from .application import SiteApplication
from .exceptions import (
    CircularDependencyError,
    ConfigSettingError,
    DuplicateFeatureError,
    DuplicateModuleIdError,
    FeatureNotProvidedError,
    InvalidDependencyError,
    MissingDependencyError,
    ReservedIdentifierError,
    SiteException,
    UnknownModuleIdError,
    UnknownPropertyError,
)
from .module_definition import ApplicationModule, ModuleDependency, ModuleStatus
from .module_registry import ModuleRegistry

__all__ = [
    'SiteApplication',
    'ApplicationModule',
    'ModuleDependency',
    'ModuleStatus',
    'ModuleRegistry',

    # Errors
    'SiteException',
    'CircularDependencyError',
    'ConfigSettingError',
    'DuplicateFeatureError',
    'DuplicateModuleIdError',
    'FeatureNotProvidedError',
    'InvalidDependencyError',
    'MissingDependencyError',
    'ReservedIdentifierError',
    'UnknownModuleIdError',
    'UnknownPropertyError',
]

__version__ = "1.0.0"
