"""
Site Application

Base class for applications built from modules. The application loads its
default modules in dependency order, loads configuration, and initializes
every module once all of them are registered.
"""

import logging
from abc import ABC, abstractmethod
from datetime import timezone
from typing import Any, Dict, Optional, Type, TYPE_CHECKING

from .exceptions import SiteException, UnknownModuleIdError, UnknownPropertyError
from .module_definition import ApplicationModule, ModuleStatus
from .module_registry import ModuleRegistry

if TYPE_CHECKING:
    from site_config.config_module import SiteConfigModule

logger = logging.getLogger(__name__)

CONFIG_FEATURE = 'SiteConfigModule'
CACHE_FEATURE = 'SiteCacheModule'


class SiteApplication(ABC):
    """
    Base class for an application.

    Modules are addressable two ways: by the identifier they were registered
    under (``app.get_module_by_id('config')`` or simply ``app.config``) and by
    a feature they provide (``app.get_module('SiteConfigModule')``). Module
    code should prefer feature lookups so it does not depend on the
    identifiers a particular application chose.
    """

    def __init__(self, app_id: str, config_filename: Optional[str] = None):
        """
        Create a new application.

        Args:
            app_id: A unique identifier for this application
            config_filename: Optional configuration file to load. If given and
                no module provides SiteConfigModule, a config module is added
                under the identifier 'config'.
        """
        self._registry = ModuleRegistry(is_reserved=self._is_reserved_identifier)
        self._modules_initialized = False
        self._error_handlers = []

        self.id = app_id
        self.locale: Optional[str] = None
        self.default_time_zone = timezone.utc

        self.add_default_modules()

        config = self._get_config_module(create=config_filename is not None)
        if config is not None:
            self.add_config_definitions(config)
            if config_filename is not None:
                config.load(config_filename)
                self.set_up_error_handling(config)
            self.configure(config)

    @abstractmethod
    def run(self) -> None:
        """Run the application."""
        pass

    # Module methods
    @property
    def modules(self) -> ModuleRegistry:
        """The module registry of this application."""
        return self._registry

    def get_default_module_list(self) -> Dict[str, Type[ApplicationModule]]:
        """
        Get the modules to load for this application.

        Returns:
            Ordered mapping of module identifier to module class. Modules are
            added in dependency order regardless of their order here.
        """
        return {}

    def add_default_modules(self) -> None:
        """Instantiate and add the default modules in dependency order."""
        modules = {
            module_id: module_class(self)
            for module_id, module_class in self.get_default_module_list().items()
        }
        if modules:
            order = self._registry.add_default_modules(modules)
            logger.debug(f"Application '{self.id}' loaded default modules: {order}")

    def add_module(self, module: ApplicationModule, module_id: str) -> None:
        """
        Add a module to this application.

        Raises:
            DuplicateModuleIdError: If the identifier is already used
            ReservedIdentifierError: If the identifier names an attribute of this application
            MissingDependencyError: If a required feature is not provided
            DuplicateFeatureError: If a provided feature is already provided
        """
        self._registry.register(module, module_id)

    def get_module(self, feature: str) -> ApplicationModule:
        """
        Get the module providing a feature.

        Raises:
            FeatureNotProvidedError: If no module provides the feature
        """
        return self._registry.get_by_feature(feature)

    def has_module(self, feature: str) -> bool:
        """Check if a module of this application provides a feature."""
        return self._registry.has_feature(feature)

    def get_module_by_id(self, module_id: str) -> ApplicationModule:
        """
        Get a module by the identifier it was registered under.

        Raises:
            UnknownModuleIdError: If no module has the identifier
        """
        return self._registry.get_by_id(module_id)

    def init_modules(self) -> None:
        """
        Initialize all modules in registration order.

        Raises:
            SiteException: If modules were already initialized
        """
        if self._modules_initialized:
            raise SiteException(f"Modules of application '{self.id}' are already initialized.")
        self._modules_initialized = True

        for module_id, module in list(self._registry.items()):
            try:
                module.init()
            except Exception as e:
                module._set_status(ModuleStatus.ERROR, e)
                logger.error(f"Failed to initialize module '{module_id}': {e}")
                raise
            module._set_status(ModuleStatus.INITIALIZED)
            logger.debug(f"Initialized module: {module_id}")

        config = self._get_config_module()
        if config is not None:
            self.post_init_configure(config)

    def __getattr__(self, name: str) -> Any:
        # only reached when normal attribute lookup fails
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self._registry.get_by_id(name)
        except UnknownModuleIdError:
            raise UnknownPropertyError(name) from None

    def _is_reserved_identifier(self, module_id: str) -> bool:
        return module_id in vars(self) or hasattr(type(self), module_id)

    # Configuration methods
    def configure(self, config: 'SiteConfigModule') -> None:
        """
        Configure modules of this application.

        Runs right after the configuration is loaded and before modules are
        initialized. Subclasses add module-specific configuration here.
        """
        config.configure()

    def post_init_configure(self, config: 'SiteConfigModule') -> None:
        """Configure this application after all modules are initialized."""
        config.post_init_configure()

    def add_config_definitions(self, config: 'SiteConfigModule') -> None:
        """Add the configuration definitions this application recognises."""
        from site_config.definitions import SITE_CONFIG_DEFINITIONS
        config.add_definitions(SITE_CONFIG_DEFINITIONS)

    def set_up_error_handling(self, config: 'SiteConfigModule') -> None:
        """
        Log errors to files when log locations are configured.

        Adds an ERROR level file handler to the root logger for each of
        ``exceptions.log_location`` and ``errors.log_location`` that is set.
        """
        for section in ('exceptions', 'errors'):
            location = config.get(f"{section}.log_location")
            if not location:
                continue

            handler = logging.FileHandler(location)
            handler.setLevel(logging.ERROR)
            handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
            logging.getLogger().addHandler(handler)
            self._error_handlers.append(handler)
            logger.debug(f"Logging {section} to {location}")

    def get_config_setting(self, setting: str) -> Any:
        """
        Get a configuration setting.

        Args:
            setting: Setting name formatted as "section.key"
        """
        return self.get_module(CONFIG_FEATURE).get(setting)

    def get_locale(self) -> Optional[str]:
        return self.locale

    def get_country(self, locale: Optional[str] = None) -> Optional[str]:
        """
        Get the two-letter country code of a locale such as 'en_CA.UTF8'.

        Defaults to the locale of this application.
        """
        if locale is None:
            locale = self.locale
        if locale is None or len(locale) < 5 or locale[2] != '_':
            return None
        return locale[3:5]

    def _get_config_module(self, create: bool = False) -> Optional['SiteConfigModule']:
        if self.has_module(CONFIG_FEATURE):
            return self.get_module(CONFIG_FEATURE)
        if not create:
            return None

        from site_config.config_module import SiteConfigModule
        config = SiteConfigModule(self)
        self.add_module(config, 'config')
        return config

    # Caching convenience methods
    def add_cache_value(self, value: Any, key: str,
                        name_space: Optional[str] = None,
                        expiration: int = 0) -> bool:
        """
        Cache a value.

        Returns:
            True if a cache module stored the value, False otherwise
        """
        if not self.has_module(CACHE_FEATURE):
            return False

        cache = self.get_module(CACHE_FEATURE)
        if name_space is None:
            return cache.set(key, value, expiration)
        return cache.set_ns(name_space, key, value, expiration)

    def get_cache_value(self, key: str, name_space: Optional[str] = None) -> Any:
        """Get a cached value, or None if it is not cached."""
        if not self.has_module(CACHE_FEATURE):
            return None

        cache = self.get_module(CACHE_FEATURE)
        if name_space is None:
            return cache.get(key)
        return cache.get_ns(name_space, key)

    def delete_cache_value(self, key: str, name_space: Optional[str] = None) -> bool:
        """Delete a cached value."""
        if not self.has_module(CACHE_FEATURE):
            return False

        cache = self.get_module(CACHE_FEATURE)
        if name_space is None:
            return cache.delete(key)
        return cache.delete_ns(name_space, key)

    def flush_cache_ns(self, name_space: str) -> bool:
        """Flush an entire cache namespace."""
        if not self.has_module(CACHE_FEATURE):
            return False

        self.get_module(CACHE_FEATURE).flush_ns(name_space)
        return True
