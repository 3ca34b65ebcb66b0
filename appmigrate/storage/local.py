#!/usr/bin/env python3
"""
Local storage backend for mock/development mode.
"""

import shutil
from pathlib import Path

from .base import StorageBackend
from ..errors import StorageError


class LocalStorage(StorageBackend):
    """Keeps bundles under a local directory, keyed by relative path."""

    def __init__(self, config):
        self.bundle_dir = Path(config.get('bundle_dir', './exports'))

    def _path(self, storage_key):
        path = (self.bundle_dir / storage_key).resolve()
        if self.bundle_dir.resolve() not in path.parents:
            raise StorageError(f"Storage key escapes bundle directory: {storage_key}")
        return path

    def upload_file(self, local_path, storage_key):
        target = self._path(storage_key)
        target.parent.mkdir(parents=True, exist_ok=True)
        if Path(local_path).resolve() != target:
            shutil.copy2(local_path, target)
        print(f"[OK] Stored bundle: {target}")
        return str(target)

    def download_file(self, storage_key, local_path):
        source = self._path(storage_key)
        if not source.exists():
            raise StorageError(f"Bundle not found in local storage: {storage_key}")
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, local_path)
        return str(local_path)

    def get_metadata(self, storage_key):
        """Get local file metadata."""
        path = self._path(storage_key)
        if path.exists():
            return {
                'storage_mode': 'local',
                'local_path': str(path),
                'exists': True,
                'size': path.stat().st_size,
            }
        return {'exists': False}
