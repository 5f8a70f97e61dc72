"""
Module Definition System

Defines the core structures for application modules: the dependency value
object, the module status, and the abstract module base class.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .application import SiteApplication


class ModuleStatus(Enum):
    """Status of a module."""
    REGISTERED = "registered"
    INITIALIZED = "initialized"
    ERROR = "error"


@dataclass(frozen=True)
class ModuleDependency:
    """
    A feature that a module depends on.

    Attributes:
        feature: Name of the feature another module must provide
        required: Whether a missing provider is an error
    """
    feature: str
    required: bool = True

    def is_required(self) -> bool:
        return self.required


class ApplicationModule(ABC):
    """
    Abstract base class for application modules.

    Application modules are pieces of code that add specific functionality
    to an application such as database connectivity, caching or
    configuration. Every module declares the features it provides and the
    features it depends on so the application can load modules in a valid
    order.
    """

    def __init__(self, app: 'SiteApplication'):
        self.app = app
        self.status = ModuleStatus.REGISTERED
        self._error_message = None

    @abstractmethod
    def init(self) -> None:
        """Initialize this module. Called once after all modules are registered."""
        pass

    def provides(self) -> List[str]:
        """
        Get the features this module provides.

        By default a module provides its own class name and the names of all
        of its ancestor module classes, so a subclass can stand in for the
        module it extends.

        Returns:
            List of provided feature names
        """
        provides = []
        for cls in type(self).__mro__:
            if cls is ApplicationModule:
                break
            if isinstance(cls, type) and issubclass(cls, ApplicationModule):
                provides.append(cls.__name__)
        return provides

    def depends(self) -> List[ModuleDependency]:
        """Get the features this module depends on."""
        return []

    # Status management
    def get_status(self) -> ModuleStatus:
        """Get the current status of the module."""
        return self.status

    def get_error_message(self):
        """Get the last error message if the module is in error state."""
        return self._error_message if self.status == ModuleStatus.ERROR else None

    def _set_status(self, status: ModuleStatus, error: Exception = None) -> None:
        """Internal method to set module status."""
        self.status = status
        self._error_message = str(error) if error is not None else None
