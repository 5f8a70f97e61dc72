"""
Configuration Testing Package
"""
