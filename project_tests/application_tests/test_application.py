"""
Application Tests

This module tests the application facade:
- Module lookup by identifier, by feature and as attributes
- Module initialization and error status
- Configuration loading and error log handlers
- Locale helpers and cache convenience methods
"""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add the project root to the path so we can import the site packages
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from site_application import (
    ApplicationModule,
    FeatureNotProvidedError,
    ModuleStatus,
    SiteApplication,
    SiteException,
    UnknownModuleIdError,
    UnknownPropertyError,
)
from site_config import SiteConfigModule
from site_modules import SiteCacheModule, SiteTimerModule

TEMP_DIR = Path(__file__).parent.parent / ".temp"


class FailingModule(ApplicationModule):
    def init(self):
        raise RuntimeError("init failed")


class WebApplication(SiteApplication):
    """Application with the built-in modules."""

    def get_default_module_list(self):
        return {
            'timer': SiteTimerModule,
            'cache': SiteCacheModule,
            'config': SiteConfigModule,
        }

    def run(self):
        self.init_modules()


class BareApplication(SiteApplication):
    def run(self):
        self.init_modules()


def write_config(name, text):
    TEMP_DIR.mkdir(exist_ok=True)
    path = TEMP_DIR / name
    path.write_text(text, encoding='utf-8')
    return path


def test_module_lookup():
    """Test modules are found by identifier, feature and attribute."""
    print("🔍 TESTING MODULE LOOKUP")
    print("-" * 50)

    app = WebApplication('web')

    # optional config dependency of the cache loads first
    assert app.modules.ids() == ['timer', 'config', 'cache']

    cache = app.get_module_by_id('cache')
    assert isinstance(cache, SiteCacheModule)
    assert app.get_module('SiteCacheModule') is cache
    assert app.cache is cache
    assert app.has_module('SiteConfigModule')
    assert not app.has_module('SiteAMQPModule')
    print("✅ Lookups by identifier, feature and attribute agree")

    with pytest.raises(UnknownModuleIdError):
        app.get_module_by_id('missing')
    with pytest.raises(FeatureNotProvidedError) as info:
        app.get_module('SiteAMQPModule')
    assert str(info.value) == "Application does not have a module that provides 'SiteAMQPModule'"
    print("✅ Unknown modules reported")

    with pytest.raises(UnknownPropertyError):
        app.missing_module
    assert not hasattr(app, 'missing_module')
    assert not hasattr(app, '_private')
    print("✅ Unknown attributes raise AttributeError")


def test_init_modules():
    """Test modules are initialized once and record their status."""
    print("\n🚀 TESTING MODULE INITIALIZATION")
    print("-" * 50)

    app = WebApplication('web')
    assert app.cache.get_status() is ModuleStatus.REGISTERED

    app.run()
    assert all(module.get_status() is ModuleStatus.INITIALIZED for module in app.modules)
    print("✅ All modules initialized")

    with pytest.raises(SiteException):
        app.init_modules()
    print("✅ Second initialization rejected")

    rows = app.modules.describe()
    assert [row['id'] for row in rows] == ['timer', 'config', 'cache']
    assert rows[2]['depends'] == ['SiteConfigModule?']
    assert rows[2]['status'] == 'initialized'
    print("✅ Registry description lists modules")


def test_init_error_status():
    """Test a failing init() marks the module and propagates."""
    app = BareApplication('bare')
    app.add_module(FailingModule(app), 'failing')

    with pytest.raises(RuntimeError):
        app.run()

    module = app.failing
    assert module.get_status() is ModuleStatus.ERROR
    assert module.get_error_message() == "init failed"
    print("✅ Failed module marked as error")


def test_config_file_adds_config_module():
    """Test a config filename adds and loads a config module."""
    print("\n⚙️  TESTING CONFIG LOADING")
    print("-" * 50)

    errors_log = TEMP_DIR / "app_errors.log"
    path = write_config("app_test.ini", (
        "[site]\n"
        "title = \"Test Site\"\n"
        "\n"
        "[i18n]\n"
        "locale = fr_FR.UTF8\n"
        "\n"
        "[errors]\n"
        f"log_location = {errors_log}\n"
    ))

    app = BareApplication('bare', config_filename=str(path))
    try:
        assert app.has_module('SiteConfigModule')
        assert app.get_config_setting('site.title') == 'Test Site'
        assert app.config.site.title == 'Test Site'
        print("✅ Config module added and file loaded")

        assert app.get_locale() == 'fr_FR.UTF8'
        assert app.get_country() == 'FR'
        assert app.get_country('en_CA.UTF8') == 'CA'
        assert app.get_country('en') is None
        assert app.get_country('en.UTF8') is None
        print("✅ Locale configured")

        handlers = [
            handler for handler in logging.getLogger().handlers
            if isinstance(handler, logging.FileHandler)
            and handler.baseFilename == os.path.abspath(errors_log)
        ]
        assert len(handlers) == 1
        assert handlers[0].level == logging.ERROR
        print("✅ Error log handler installed")
    finally:
        for handler in app._error_handlers:
            logging.getLogger().removeHandler(handler)
            handler.close()


def test_missing_config_file():
    """Test a missing config file fails application construction."""
    with pytest.raises(FileNotFoundError):
        BareApplication('bare', config_filename=str(TEMP_DIR / "does_not_exist.ini"))
    print("✅ Missing config file reported")


def test_cache_convenience_methods():
    """Test cache helpers use the cache module when one is loaded."""
    print("\n🗄️  TESTING CACHE HELPERS")
    print("-" * 50)

    app = WebApplication('web')
    app.run()

    assert app.add_cache_value({'id': 1}, 'user')
    assert app.get_cache_value('user') == {'id': 1}
    assert app.add_cache_value('page', 'home', name_space='pages')
    assert app.get_cache_value('home', name_space='pages') == 'page'

    assert app.flush_cache_ns('pages')
    assert app.get_cache_value('home', name_space='pages') is None
    assert app.delete_cache_value('user')
    assert app.get_cache_value('user') is None
    print("✅ Cache helpers store, flush and delete values")

    bare = BareApplication('bare')
    assert bare.add_cache_value('value', 'key') is False
    assert bare.get_cache_value('key') is None
    assert bare.flush_cache_ns('pages') is False
    print("✅ Cache helpers are no-ops without a cache module")


def main():
    """Run all application tests."""
    print("🧪 APPLICATION TESTS")
    print("=" * 70)

    tests = [
        test_module_lookup,
        test_init_modules,
        test_init_error_status,
        test_config_file_adds_config_module,
        test_missing_config_file,
        test_cache_convenience_methods,
    ]
    for test in tests:
        test()

    print("\n🎉 ALL APPLICATION TESTS PASSED!")


if __name__ == "__main__":
    main()
