"""
Configuration validation package.

This package validates migration configuration and exported application
descriptors against the JSON schemas shipped in appmigrate/schemas.
"""

__all__ = ['validation']
