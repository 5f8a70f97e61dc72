"""
Database Module

Application module for database connectivity. Once initialized, the
connection is also available as the ``db`` attribute of the application.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, Result
from sqlalchemy.orm import Session, sessionmaker

from site_application.exceptions import SiteException
from site_application.module_definition import ApplicationModule, ModuleDependency
from site_config.settings import DatabaseSettings

logger = logging.getLogger(__name__)


class SiteDatabaseModule(ApplicationModule):
    """
    Database connection module.

    Set ``dsn`` before the application initializes its modules, or leave it
    unset to use the ``database.dsn`` configuration setting.
    """

    def __init__(self, app):
        super().__init__(app)
        self.dsn: Optional[str] = None
        self.echo: bool = False
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        self._session_factory: Optional[sessionmaker] = None

    def depends(self) -> List[ModuleDependency]:
        depends = super().depends()
        depends.append(ModuleDependency('SiteConfigModule', required=False))
        return depends

    def init(self) -> None:
        """
        Connect to the database.

        Raises:
            SiteException: If no valid DSN is available
        """
        settings = self._get_settings()

        try:
            self._engine = create_engine(settings.dsn, echo=settings.echo, pool_pre_ping=True)
            self._connection = self._engine.connect()
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        # convenience reference
        self.app.db = self._connection

        logger.info(f"Database connection established ({self._engine.url.render_as_string(hide_password=True)})")

    def _get_settings(self) -> DatabaseSettings:
        dsn = self.dsn
        echo = self.echo
        if dsn is None and self.app.has_module('SiteConfigModule'):
            config = self.app.get_module('SiteConfigModule')
            dsn = config.get('database.dsn')
            echo = echo or bool(config.get('database.echo'))

        try:
            return DatabaseSettings(dsn=dsn or '', echo=echo)
        except ValidationError as e:
            raise SiteException(f"Database module is not configured: {e}") from e

    def get_connection(self) -> Connection:
        """
        Get the database connection of this module.

        Raises:
            SiteException: If the module is not initialized
        """
        if self._connection is None:
            raise SiteException("Database module is not initialized")
        return self._connection

    @property
    def engine(self) -> Optional[Engine]:
        """Get the engine instance."""
        return self._engine

    @property
    def is_connected(self) -> bool:
        """Check if the module is connected to the database."""
        return self._connection is not None and not self._connection.closed

    def execute(self, query: str, params: Optional[Mapping[str, Any]] = None) -> Result:
        """
        Execute a textual SQL statement on the module connection.

        Args:
            query: SQL with named ``:param`` placeholders
            params: Parameter values

        Returns:
            The SQLAlchemy result
        """
        return self.get_connection().execute(text(query), dict(params or {}))

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get an ORM session that commits on success and rolls back on error."""
        if self._session_factory is None:
            raise SiteException("Database module is not initialized")

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """Check health of the database connection."""
        if self._connection is None:
            return False

        try:
            self._connection.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def get_database_info(self) -> Dict[str, Any]:
        """Get basic information about the connected database."""
        if self._engine is None:
            return {'connected': False}

        return {
            'connected': self.is_connected,
            'dialect': self._engine.dialect.name,
            'driver': self._engine.driver,
            'database': self._engine.url.database,
            'host': self._engine.url.host,
        }

    def close(self) -> None:
        """Close the connection and dispose of the engine."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection closed")
