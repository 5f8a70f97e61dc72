"""
Configuration Module

Application module that loads settings from an INI file and from
environment variables, validated against the registered definitions.
"""

import configparser
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from dotenv import load_dotenv

from site_application.exceptions import ConfigSettingError
from site_application.module_definition import ApplicationModule

from .config_section import ConfigSection

logger = logging.getLogger(__name__)

_TRUE_VALUES = ('1', 'on', 'true', 'yes')
_FALSE_VALUES = ('0', 'off', 'false', 'no', '')


def coerce_setting(name: str, raw: Any, default: Any) -> Any:
    """
    Convert a raw string setting to the type of its default value.

    Args:
        name: Qualified setting name, used in error messages
        raw: The raw value read from a file or the environment
        default: The default value of the setting definition

    Returns:
        The converted value

    Raises:
        ConfigSettingError: If the value can not be converted
    """
    if not isinstance(raw, str):
        return raw

    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]

    try:
        if isinstance(default, bool):
            lowered = value.lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(f"'{value}' is not a boolean")
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, (list, dict)):
            return json.loads(value)
    except ValueError as e:
        raise ConfigSettingError(f"Invalid value for configuration setting '{name}': {e}") from e

    if default is None and value == '':
        return None
    return value


class SiteConfigModule(ApplicationModule):
    """
    Configuration module.

    Settings must be defined with add_definitions() before a file is loaded.
    Sections are available as attributes, so ``config.amqp.server`` reads
    the ``server`` setting of the ``[amqp]`` section.

    Environment variables named ``SITE_<SECTION>__<KEY>`` override values
    from the file. A ``.env`` file in the working directory is read first.
    """

    SOURCE_DEFAULT = 'default'
    SOURCE_FILE = 'file'
    SOURCE_ENVIRONMENT = 'environment'
    SOURCE_RUNTIME = 'runtime'

    env_prefix = 'SITE_'

    def __init__(self, app):
        super().__init__(app)
        self._definitions: Dict[str, Any] = {}
        self._sections: Dict[str, ConfigSection] = {}
        self._sources: Dict[Tuple[str, str], str] = {}
        self.filename: Optional[str] = None

    def init(self) -> None:
        # settings are loaded before modules are initialized
        pass

    # Definitions
    def add_definitions(self, definitions: Mapping[str, Any]) -> None:
        """Define settings from a mapping of "section.key" to default value."""
        for name, default in definitions.items():
            self.add_definition(name, default)

    def add_definition(self, name: str, default: Any = None) -> None:
        """
        Define a setting.

        Redefining an existing setting keeps its current value.
        """
        section_name, key = self._split_name(name)
        if self.is_defined(name):
            return

        self._definitions[name] = default
        section = self._sections.get(section_name)
        if section is None:
            self._sections[section_name] = ConfigSection(
                section_name, {key: default}, self, self.SOURCE_DEFAULT
            )
        else:
            section._define(key, default, self.SOURCE_DEFAULT)

    def is_defined(self, name: str) -> bool:
        return name in self._definitions

    # Loading
    def load(self, filename: str, load_environment: bool = True) -> None:
        """
        Load settings from an INI file.

        Args:
            filename: Path of the configuration file
            load_environment: Whether to apply environment overrides afterwards

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigSettingError: If the file contains an undefined or invalid setting
        """
        path = Path(filename)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file '{filename}' does not exist")

        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str
        parser.read(path, encoding='utf-8')

        count = 0
        for section_name in parser.sections():
            for key, raw in parser[section_name].items():
                self._apply(section_name, key, raw, self.SOURCE_FILE)
                count += 1

        self.filename = str(path)
        logger.info(f"Loaded {count} configuration settings from {path}")

        if load_environment:
            self.load_environment()

    def load_environment(self, environ: Optional[Mapping[str, str]] = None) -> int:
        """
        Apply environment variable overrides.

        Args:
            environ: Variables to read. Defaults to os.environ after loading .env

        Returns:
            Number of settings overridden
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        count = 0
        for variable, raw in environ.items():
            if not variable.startswith(self.env_prefix):
                continue

            section_name, _, key = variable[len(self.env_prefix):].lower().partition('__')
            if not key:
                continue

            if not self.is_defined(f"{section_name}.{key}"):
                logger.warning(f"Ignoring environment variable {variable}: setting is not defined")
                continue

            self._apply(section_name, key, raw, self.SOURCE_ENVIRONMENT)
            count += 1

        if count:
            logger.debug(f"Applied {count} configuration settings from the environment")
        return count

    def _apply(self, section_name: str, key: str, raw: Any, source: str) -> None:
        name = f"{section_name}.{key}"
        if not self.is_defined(name):
            raise ConfigSettingError(f"Configuration setting '{name}' is not defined.")

        value = coerce_setting(name, raw, self._definitions[name])
        self._sections[section_name].set(key, value, source)

    # Access
    def get(self, name: str) -> Any:
        """Get a setting by its "section.key" name."""
        section_name, key = self._split_name(name)
        return self.get_section(section_name).get(key)

    def set(self, name: str, value: Any) -> None:
        """Set a setting by its "section.key" name at runtime."""
        section_name, key = self._split_name(name)
        self.get_section(section_name).set(key, value)

    def get_section(self, section_name: str) -> ConfigSection:
        """
        Get a configuration section.

        Raises:
            ConfigSettingError: If the section does not exist
        """
        try:
            return self._sections[section_name]
        except KeyError:
            raise ConfigSettingError(
                f"Configuration section '{section_name}' does not exist."
            ) from None

    def get_source(self, section_name: str, key: str) -> Optional[str]:
        """Get where the current value of a setting came from."""
        return self._sources.get((section_name, key))

    def set_source(self, section_name: str, key: str, source: str) -> None:
        self._sources[(section_name, key)] = source

    @property
    def sections(self) -> Dict[str, ConfigSection]:
        return dict(self._sections)

    def __getattr__(self, name: str) -> ConfigSection:
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self.get_section(name)
        except ConfigSettingError as e:
            raise AttributeError(str(e)) from None

    def __iter__(self) -> Iterator[ConfigSection]:
        return iter(list(self._sections.values()))

    def __str__(self) -> str:
        return "\n".join(text for text in map(str, self._sections.values()) if text)

    # Hooks
    def configure(self) -> None:
        """
        Apply settings loaded from the file to the application.

        Runs before modules are initialized.
        """
        if 'i18n' in self._sections and 'locale' in self._sections['i18n']:
            self.app.locale = self.get('i18n.locale')

    def post_init_configure(self) -> None:
        """Runs after all modules are initialized."""
        pass

    @staticmethod
    def _split_name(name: str) -> Tuple[str, str]:
        section_name, _, key = name.partition('.')
        if not section_name or not key:
            raise ConfigSettingError(
                f"Invalid configuration setting name '{name}'. Names have the form 'section.key'."
            )
        return section_name, key
