#!/usr/bin/env python3
"""
Base control-plane interface consumed by the export and import orchestrators.
"""


class ControlPlane:
    """
    Capability set of a rack (remote control plane).

    Lookups of absent objects raise NotFoundError; failed remote calls raise
    TransportError. Implementations must not retry mutating calls.
    """

    def app_create(self, name, generation=None):
        """Create an application; returns App."""
        raise NotImplementedError("Subclasses must implement app_create()")

    def app_get(self, name):
        """Return App or raise NotFoundError."""
        raise NotImplementedError("Subclasses must implement app_get()")

    def app_list(self):
        """Return list of App, sorted by name."""
        raise NotImplementedError("Subclasses must implement app_list()")

    def app_cancel(self, name):
        """Cancel an in-progress update of the app."""
        raise NotImplementedError("Subclasses must implement app_cancel()")

    def app_update(self, name, parameters):
        """Apply parameter changes (key -> value)."""
        raise NotImplementedError("Subclasses must implement app_update()")

    def app_delete(self, name):
        raise NotImplementedError("Subclasses must implement app_delete()")

    def build_import(self, app, stream):
        """
        Import a build artifact.

        Args:
            app: Application name
            stream: Readable binary file object with the build export

        Returns:
            Build (its release field names the release created for it)
        """
        raise NotImplementedError("Subclasses must implement build_import()")

    def build_export(self, app, build_id, stream):
        """Write the build artifact into the writable binary stream."""
        raise NotImplementedError("Subclasses must implement build_export()")

    def release_get(self, app, release_id):
        raise NotImplementedError("Subclasses must implement release_get()")

    def release_create(self, app, env):
        """Create a release carrying the environment text; returns Release."""
        raise NotImplementedError("Subclasses must implement release_create()")

    def release_promote(self, app, release_id):
        raise NotImplementedError("Subclasses must implement release_promote()")

    def resource_list(self, app):
        """Return list of Resource bound to the app."""
        raise NotImplementedError("Subclasses must implement resource_list()")

    def resource_export(self, app, name):
        """Return a readable binary stream with the resource data; caller closes it."""
        raise NotImplementedError("Subclasses must implement resource_export()")

    def resource_import(self, app, name, stream):
        raise NotImplementedError("Subclasses must implement resource_import()")
