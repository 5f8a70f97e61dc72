"""
Configuration Definitions

Every setting the config module accepts, with its default value. The type
of the default is the type values loaded from files and the environment are
coerced to.
"""

SITE_CONFIG_DEFINITIONS = {
    # Site
    'site.title': None,
    'site.shortname': None,
    'site.meta_description': None,

    # DSN of database
    'database.dsn': None,
    # Log SQL statements
    'database.echo': False,

    # Default locale
    'i18n.locale': 'en_CA.UTF8',
    # Default timezone
    'date.time_zone': None,

    # Exceptions & errors
    'exceptions.log_location': None,
    'errors.log_location': None,

    # In-process cache
    'cache.enabled': True,
    'cache.app_ns': '',

    # Location of AMQP server in the form host[:port]
    'amqp.server': None,
    # Default namespace for AMQP exchanges and queues of this application
    'amqp.default_namespace': '',
    # How long in milliseconds to wait for a synchronous response from the
    # AMQP job processor
    'amqp.sync_timeout': 2000,
    'amqp.username': 'guest',
    'amqp.password': 'guest',
    'amqp.virtual_host': '/',
}
