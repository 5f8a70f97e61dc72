"""
Database Infrastructure Package

This package provides the database module for Site applications: a
SQLAlchemy engine and connection owned by the application.
"""

from .database_module import SiteDatabaseModule

__all__ = [
    "SiteDatabaseModule",
]
