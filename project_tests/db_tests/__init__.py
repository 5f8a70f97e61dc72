"""
Database Testing Package

Tests for the database module.
"""
