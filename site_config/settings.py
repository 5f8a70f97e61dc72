"""
Settings Models

Validated, typed views over configuration values, plus the runtime
settings entry points read from the environment.
"""

import logging
from typing import Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from .config_module import SiteConfigModule

DEFAULT_AMQP_PORT = 5672
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class AMQPSettings(BaseModel):
    """
    AMQP broker settings with validation.

    The broker location is given as ``host[:port]``; the port defaults to
    5672 when it is left out.
    """

    host: str = Field(..., description="Broker host")
    port: int = Field(DEFAULT_AMQP_PORT, description="Broker port")
    username: str = Field("guest", description="Broker username")
    password: str = Field("guest", description="Broker password")
    virtual_host: str = Field("/", description="Broker virtual host")
    default_namespace: str = Field("", description="Default exchange namespace")
    sync_timeout: int = Field(2000, description="RPC reply timeout in milliseconds")

    @field_validator('host')
    @classmethod
    def validate_host(cls, v):
        """Validate the host is not empty."""
        if not v or not v.strip():
            raise ValueError('AMQP host must not be empty')
        return v.strip()

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        """Validate broker port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError('AMQP port must be between 1 and 65535')
        return v

    @field_validator('sync_timeout')
    @classmethod
    def validate_sync_timeout(cls, v):
        """Validate the RPC timeout is positive."""
        if v <= 0:
            raise ValueError('AMQP sync timeout must be a positive number of milliseconds')
        return v

    @property
    def sync_timeout_seconds(self) -> float:
        return self.sync_timeout / 1000

    @classmethod
    def parse_server(cls, server: str, **kwargs) -> "AMQPSettings":
        """
        Create settings from a ``host[:port]`` server string.

        Args:
            server: Broker location
            **kwargs: Remaining settings

        Returns:
            AMQPSettings: Validated settings
        """
        host, _, port = server.strip().partition(':')
        if port:
            kwargs['port'] = port
        return cls(host=host, **kwargs)

    @classmethod
    def from_config(cls, config: 'SiteConfigModule') -> Optional["AMQPSettings"]:
        """
        Create settings from the [amqp] configuration section.

        Returns:
            AMQPSettings, or None if no server is configured
        """
        amqp = config.get_section('amqp')
        if not amqp.server:
            return None

        return cls.parse_server(
            amqp.server,
            username=amqp.username,
            password=amqp.password,
            virtual_host=amqp.virtual_host,
            default_namespace=amqp.default_namespace or '',
            sync_timeout=amqp.sync_timeout,
        )


class DatabaseSettings(BaseModel):
    """Database connection settings with validation."""

    dsn: str = Field(..., description="SQLAlchemy database URL")
    echo: bool = Field(False, description="Enable SQL query logging")

    @field_validator('dsn')
    @classmethod
    def validate_dsn(cls, v):
        """Validate the DSN is not empty."""
        if not v or not v.strip():
            raise ValueError('Database DSN must not be empty')
        return v.strip()


class RuntimeSettings(BaseSettings):
    """
    Process-level settings read from environment variables or a .env file.
    """

    log_level: str = Field("INFO", description="Root log level")
    log_format: str = Field(LOG_FORMAT, description="Log record format")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def configure_logging(level: Optional[str] = None) -> None:
    """
    Set up logging for an entry point.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL environment setting.
    """
    settings = RuntimeSettings()
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=settings.log_format,
    )
