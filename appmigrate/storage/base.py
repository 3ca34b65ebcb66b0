#!/usr/bin/env python3
"""
Base storage backend interface for exported bundles.
"""


class StorageBackend:
    """Base interface for storage backends."""

    def upload_file(self, local_path, storage_key):
        """Store a local bundle file under storage_key; returns its location."""
        raise NotImplementedError

    def download_file(self, storage_key, local_path):
        """Fetch storage_key into local_path; returns the local path."""
        raise NotImplementedError

    def get_metadata(self, storage_key):
        """Get metadata about a stored bundle ({'exists': False} when absent)."""
        raise NotImplementedError
