"""
Application state migration toolkit.

Exports a running application (descriptor, environment, build and resource
data) into a portable bundle and reconstitutes it on a target rack.
"""

__version__ = '1.0.0'

__all__ = ['migration', 'controlplane', 'storage', 'config', 'errors']
