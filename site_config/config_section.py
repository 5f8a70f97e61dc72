"""
Configuration Section

A named group of settings belonging to a config module.
"""

from typing import Any, Dict, Iterator, Tuple, TYPE_CHECKING

from site_application.exceptions import ConfigSettingError

if TYPE_CHECKING:
    from .config_module import SiteConfigModule


class ConfigSection:
    """
    Settings of one configuration section.

    Only settings that exist in the section can be read or written. Values
    are reachable both as attributes (``config.amqp.server``) and as items
    (``config.amqp['server']``).
    """

    def __init__(self, name: str, values: Dict[str, Any],
                 config: 'SiteConfigModule', source: str):
        self._name = str(name)
        self._values = dict(values)
        self._config = config

        for key in self._values:
            self._config.set_source(self._name, key, source)

    @property
    def section_name(self) -> str:
        return self._name

    def get(self, key: str) -> Any:
        """
        Get a setting value.

        Raises:
            ConfigSettingError: If the setting does not exist in this section
        """
        if key not in self._values:
            raise ConfigSettingError(
                f"Can not get configuration setting. Setting '{key}' does not exist "
                f"in the section '{self._name}'."
            )
        return self._values[key]

    def set(self, key: str, value: Any, source: str = None) -> None:
        """
        Set a setting value.

        Raises:
            ConfigSettingError: If the setting does not exist in this section
        """
        if key not in self._values:
            raise ConfigSettingError(
                f"Can not set configuration setting. Setting '{key}' does not exist "
                f"in the section '{self._name}'."
            )
        self._values[key] = value
        self._config.set_source(self._name, key, source or self._config.SOURCE_RUNTIME)

    def _define(self, key: str, value: Any, source: str) -> None:
        self._values[key] = value
        self._config.set_source(self._name, key, source)

    def __getattr__(self, key: str) -> Any:
        if key.startswith('_'):
            raise AttributeError(key)
        try:
            return self.get(key)
        except ConfigSettingError as e:
            raise AttributeError(str(e)) from None

    def __setattr__(self, key: str, value: Any) -> None:
        if key.startswith('_'):
            super().__setattr__(key, value)
        else:
            self.set(key, value)

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(list(self._values.items()))

    def __len__(self) -> int:
        return len(self._values)

    def __str__(self) -> str:
        if all(value is None or value == '' for value in self._values.values()):
            return ''

        lines = [f"[{self._name}]"]
        for key, value in self._values.items():
            if value is None or value == '':
                continue
            if value is True:
                value = 'On'
            elif value is False:
                value = 'Off'
            elif isinstance(value, str):
                value = f'"{value}"'
            lines.append(f"{key} = {value}")

        return "\n".join(lines) + "\n"
