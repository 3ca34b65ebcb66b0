#!/usr/bin/env python3
"""
Error types shared by the migration pipeline.
"""


class MigrationError(Exception):
    """Base class for every error raised by appmigrate."""


class NotFoundError(MigrationError):
    """Application, release, build or resource does not exist."""


class TransportError(MigrationError):
    """Remote call failed."""


class ConflictError(MigrationError):
    """Remote side refused the mutation (target exists, app is transitioning)."""


class PollTimeoutError(MigrationError):
    """Status polling exceeded its deadline."""

    def __init__(self, app, last_status, timeout):
        self.app = app
        self.last_status = last_status
        self.timeout = timeout
        super().__init__(
            f"timeout after {timeout}s waiting for app {app} (last status: {last_status})"
        )


class DecodeError(MigrationError):
    """Bundle archive is malformed."""

    def __init__(self, path, message):
        self.path = path
        super().__init__(f"{path}: {message}")


class ConfigurationError(MigrationError):
    """Configuration file or credentials are missing or invalid."""


class StorageError(MigrationError):
    """Bundle storage backend failed."""


class StageError(MigrationError):
    """A pipeline stage failed; wraps the underlying error with the stage name."""

    def __init__(self, stage, cause):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage}: {cause}")
