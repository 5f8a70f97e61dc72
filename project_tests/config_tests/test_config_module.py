"""
Configuration Module Tests

This module tests the config module and settings models:
- Definitions, defaults and sections
- INI file loading with type coercion
- Environment variable overrides
- Section rendering
- AMQP and database settings validation
"""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add the project root to the path so we can import the site packages
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from site_application import ConfigSettingError, SiteApplication
from site_config import (
    AMQPSettings,
    DatabaseSettings,
    SiteConfigModule,
    coerce_setting,
)

TEMP_DIR = Path(__file__).parent.parent / ".temp"


class ConfigApplication(SiteApplication):
    def get_default_module_list(self):
        return {'config': SiteConfigModule}

    def run(self):
        self.init_modules()


def write_config(name, text):
    TEMP_DIR.mkdir(exist_ok=True)
    path = TEMP_DIR / name
    path.write_text(text, encoding='utf-8')
    return path


def test_defaults():
    """Test defined settings start with their defaults."""
    print("📋 TESTING DEFAULTS")
    print("-" * 50)

    config = ConfigApplication('config-test').config

    assert config.get('amqp.sync_timeout') == 2000
    assert config.get('amqp.server') is None
    assert config.get('cache.enabled') is True
    assert config.amqp.virtual_host == '/'
    assert config.amqp['username'] == 'guest'
    assert config.get_source('amqp', 'server') == SiteConfigModule.SOURCE_DEFAULT
    assert 'server' in config.amqp
    assert config.is_defined('amqp.server')
    assert not config.is_defined('amqp.missing')
    print("✅ Defaults available as settings, attributes and items")

    with pytest.raises(ConfigSettingError):
        config.get('amqp.missing')
    with pytest.raises(ConfigSettingError):
        config.get_section('missing')
    with pytest.raises(ConfigSettingError):
        config.get('no_dot')
    assert not hasattr(config, 'missing')
    assert not hasattr(config.amqp, 'missing')
    print("✅ Unknown settings and sections rejected")


def test_load_file():
    """Test settings are loaded from a file and coerced to their types."""
    print("\n📄 TESTING FILE LOADING")
    print("-" * 50)

    path = write_config("config_load.ini", (
        "[amqp]\n"
        "server = broker.test:5673\n"
        "sync_timeout = 500\n"
        "\n"
        "[cache]\n"
        "enabled = Off\n"
        "\n"
        "[database]\n"
        "echo = yes\n"
    ))

    config = ConfigApplication('config-test').config
    config.load(str(path), load_environment=False)

    assert config.get('amqp.server') == 'broker.test:5673'
    assert config.get('amqp.sync_timeout') == 500
    assert config.get('cache.enabled') is False
    assert config.get('database.echo') is True
    assert config.get_source('amqp', 'server') == SiteConfigModule.SOURCE_FILE
    assert config.filename == str(path)
    print("✅ File values loaded and coerced")


def test_load_undefined_setting():
    """Test files may only contain defined settings."""
    path = write_config("config_undefined.ini", "[amqp]\nhost = broker.test\n")
    config = ConfigApplication('config-test').config

    with pytest.raises(ConfigSettingError):
        config.load(str(path), load_environment=False)
    print("✅ Undefined setting rejected")


def test_load_invalid_value():
    """Test values that can not be coerced are rejected."""
    path = write_config("config_invalid.ini", "[amqp]\nsync_timeout = soon\n")
    config = ConfigApplication('config-test').config

    with pytest.raises(ConfigSettingError):
        config.load(str(path), load_environment=False)
    print("✅ Invalid value rejected")


def test_environment_overrides():
    """Test SITE_SECTION__KEY variables override settings."""
    print("\n🌍 TESTING ENVIRONMENT OVERRIDES")
    print("-" * 50)

    config = ConfigApplication('config-test').config
    count = config.load_environment({
        'SITE_AMQP__SERVER': 'env-broker',
        'SITE_AMQP__SYNC_TIMEOUT': '750',
        'SITE_AMQP__UNKNOWN': 'ignored',
        'SITE_MALFORMED': 'ignored',
        'PATH': '/usr/bin',
    })

    assert count == 2
    assert config.get('amqp.server') == 'env-broker'
    assert config.get('amqp.sync_timeout') == 750
    assert config.get_source('amqp', 'server') == SiteConfigModule.SOURCE_ENVIRONMENT
    print("✅ Environment overrides applied, unknown variables skipped")


def test_runtime_set_and_render():
    """Test runtime values and INI rendering of sections."""
    config = ConfigApplication('config-test').config

    config.amqp.server = 'runtime-broker'
    assert config.get('amqp.server') == 'runtime-broker'
    assert config.get_source('amqp', 'server') == SiteConfigModule.SOURCE_RUNTIME

    with pytest.raises(ConfigSettingError):
        config.set('amqp.missing', 'value')

    text = str(config.amqp)
    assert text.startswith("[amqp]\n")
    assert 'server = "runtime-broker"' in text
    assert 'sync_timeout = 2000' in text
    assert 'default_namespace' not in text
    assert str(config.cache).splitlines()[1] == 'enabled = On'
    assert str(config.site) == ''

    config.site.title = ''
    assert str(config.site) == ''
    config.site.shortname = 'docs'
    assert str(config.site) == '[site]\nshortname = "docs"\n'
    print("✅ Sections rendered as INI, empty sections omitted")


def test_coerce_setting():
    """Test raw values are coerced to the type of their default."""
    assert coerce_setting('a.b', '"quoted"', None) == 'quoted'
    assert coerce_setting('a.b', '', None) is None
    assert coerce_setting('a.b', 'TRUE', False) is True
    assert coerce_setting('a.b', '0', True) is False
    assert coerce_setting('a.b', '1.5', 0.5) == 1.5
    assert coerce_setting('a.b', '["x", "y"]', []) == ['x', 'y']
    assert coerce_setting('a.b', 42, 'text') == 42

    with pytest.raises(ConfigSettingError):
        coerce_setting('a.b', 'maybe', False)
    print("✅ Values coerced")


def test_amqp_settings():
    """Test broker settings parsing and validation."""
    print("\n📡 TESTING AMQP SETTINGS")
    print("-" * 50)

    settings = AMQPSettings.parse_server('broker.test')
    assert settings.host == 'broker.test'
    assert settings.port == 5672

    settings = AMQPSettings.parse_server('broker.test:5673', sync_timeout=250)
    assert settings.port == 5673
    assert settings.sync_timeout_seconds == 0.25
    print("✅ host[:port] parsed with default port")

    with pytest.raises(ValidationError):
        AMQPSettings.parse_server('broker.test:70000')
    with pytest.raises(ValidationError):
        AMQPSettings.parse_server(':5672')
    with pytest.raises(ValidationError):
        AMQPSettings.parse_server('broker.test', sync_timeout=0)
    print("✅ Invalid settings rejected")

    config = ConfigApplication('config-test').config
    assert AMQPSettings.from_config(config) is None
    config.set('amqp.server', 'broker.test:5673')
    config.set('amqp.default_namespace', 'site')
    settings = AMQPSettings.from_config(config)
    assert settings.port == 5673
    assert settings.default_namespace == 'site'
    print("✅ Settings read from configuration")


def test_database_settings():
    """Test database settings validation."""
    assert DatabaseSettings(dsn=' sqlite:// ').dsn == 'sqlite://'

    with pytest.raises(ValidationError):
        DatabaseSettings(dsn='')
    print("✅ Database DSN validated")


def main():
    """Run all configuration tests."""
    print("🧪 CONFIGURATION TESTS")
    print("=" * 70)

    tests = [
        test_defaults,
        test_load_file,
        test_load_undefined_setting,
        test_load_invalid_value,
        test_environment_overrides,
        test_runtime_set_and_render,
        test_coerce_setting,
        test_amqp_settings,
        test_database_settings,
    ]
    for test in tests:
        test()

    print("\n🎉 ALL CONFIGURATION TESTS PASSED!")


if __name__ == "__main__":
    main()
