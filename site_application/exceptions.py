"""
Site Exceptions

Exception hierarchy raised by the application and its module registry.
Startup errors are fatal: they are raised while the application is being
constructed and are never retried.
"""

from typing import List, Optional


class SiteException(Exception):
    """Base class for errors raised by Site applications and modules."""

    http_status_code = 500

    def __init__(self, message: str = "", code: int = 0):
        super().__init__(message)
        self.message = message
        self.code = code


class DuplicateModuleIdError(SiteException):
    """A module with the same identifier is already registered."""


class ReservedIdentifierError(SiteException):
    """A module identifier collides with an attribute of the application."""


class InvalidDependencyError(SiteException):
    """A module declared a dependency that is not a ModuleDependency."""


class MissingDependencyError(SiteException):
    """A required feature is not provided by any module."""

    def __init__(self, message: str, module_class: str, feature: str):
        super().__init__(message)
        self.module_class = module_class
        self.feature = feature


class DuplicateFeatureError(SiteException):
    """A feature is already provided by another module."""

    def __init__(self, message: str, feature: str, provider_class: str):
        super().__init__(message)
        self.feature = feature
        self.provider_class = provider_class


class CircularDependencyError(SiteException):
    """Modules transitively depend on themselves."""

    def __init__(self, chain: List[str]):
        super().__init__(
            "Circular module dependency detected:\n" + " => ".join(chain)
        )
        self.chain = chain


class FeatureNotProvidedError(SiteException, LookupError):
    """No module of the application provides the requested feature."""

    def __init__(self, feature: str):
        super().__init__(
            f"Application does not have a module that provides '{feature}'"
        )
        self.feature = feature


class UnknownModuleIdError(SiteException, LookupError):
    """No module is registered under the requested identifier."""

    def __init__(self, module_id: str):
        super().__init__(f"No application module with the identifier '{module_id}' is loaded.")
        self.module_id = module_id


class UnknownPropertyError(SiteException, AttributeError):
    """Neither a real attribute nor a registered module id matches a name."""

    def __init__(self, name: str, owner: Optional[str] = None):
        super().__init__(
            f"{owner or 'Application'} does not have a property with the name "
            f"'{name}', and no application module with the identifier '{name}' is loaded."
        )
        self.name = name


class ConfigSettingError(SiteException, KeyError):
    """A configuration section or setting does not exist."""

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message
