"""
Application Testing Package

Tests for module resolution and the application facade.
"""
