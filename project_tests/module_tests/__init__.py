"""
Built-in Module Testing Package
"""
