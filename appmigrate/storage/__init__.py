"""
Storage backend abstraction package.

This package provides abstraction for different storage backends
(local filesystem, S3) for exported application bundles.
"""

from pathlib import Path

from .local import LocalStorage
from .s3 import S3Storage
from ..errors import ConfigurationError


def get_storage_backend(config):
    """Factory function to get appropriate storage backend."""
    storage_mode = config['storage'].get('backend', 'local')

    if storage_mode == 'local':
        return LocalStorage(config['storage'])
    elif storage_mode == 's3':
        return S3Storage(config.get('s3', {}))
    else:
        raise ConfigurationError(f"Unknown storage backend: {storage_mode}")


def bundle_storage_key(app, bundle_path):
    """Storage key for an exported bundle: <app>/<file name>."""
    return f"{app}/{Path(bundle_path).name}"


__all__ = ['LocalStorage', 'S3Storage', 'get_storage_backend', 'bundle_storage_key']
