#!/usr/bin/env python3
"""
Export orchestrator: serializes a live application into a bundle archive.

Read-only against the source rack. Any failure (including a single resource
export) aborts the whole export and no bundle file is written.
"""

import shutil
import tempfile
from pathlib import Path

from .archive import (
    APP_ENTRY, BUILD_ENTRY, ENV_ENTRY, pack_file, resource_entry,
    write_descriptor, write_manifest,
)
from .utils import start_step, step_ok
from ..config.validation import validate_descriptor
from ..errors import DecodeError, MigrationError, StageError

CHUNK_SIZE = 64 * 1024


def _stage(name, func, *args):
    """Run one export step, tagging any failure with the step name."""
    try:
        return func(*args)
    except StageError:
        raise
    except (MigrationError, OSError, ValueError) as e:
        raise StageError(name, e) from e


class Exporter:
    """Walks an application's state and resources into a bundle."""

    def __init__(self, control_plane):
        self.control_plane = control_plane

    def export(self, app, output_path):
        """
        Export app into a bundle archive at output_path.

        Args:
            app: Source application name
            output_path: Destination .tgz path

        Returns:
            Path of the written bundle
        """
        with tempfile.TemporaryDirectory(prefix='appmigrate-export-') as tmp:
            work_dir = Path(tmp)

            start_step(f"Exporting app {app}")
            descriptor = _stage('export-app', self._fetch_app, app)
            step_ok()

            release = None
            if descriptor['release']:
                start_step("Exporting env")
                release = _stage('export-env', self._export_env, app, descriptor['release'], work_dir)
                step_ok()

            if release is not None and release.build:
                start_step(f"Exporting build {release.build}")
                _stage('export-build', self._export_build, app, release.build, work_dir)
                step_ok()

            resources = _stage('list-resources', self.control_plane.resource_list, app)
            for resource in resources:
                start_step(f"Exporting resource {resource.name}")
                _stage(f"export-resource {resource.name}", self._export_resource, app, resource.name, work_dir)
                step_ok()

            start_step("Packaging export")
            output_path = _stage('package', self._package, app, descriptor, work_dir, output_path)
            step_ok()

        return Path(output_path)

    def _package(self, app, descriptor, work_dir, output_path):
        is_valid, errors = validate_descriptor(descriptor)
        if not is_valid:
            raise DecodeError(APP_ENTRY, '; '.join(errors))
        write_descriptor(work_dir, descriptor)
        write_manifest(work_dir, app)
        return pack_file(work_dir, output_path)

    def _fetch_app(self, app):
        return self.control_plane.app_get(app).descriptor()

    def _export_env(self, app, release_id, work_dir):
        release = self.control_plane.release_get(app, release_id)
        with open(work_dir / ENV_ENTRY, 'w', encoding='utf-8', newline='') as f:
            f.write(release.env or '')
        return release

    def _export_build(self, app, build_id, work_dir):
        with open(work_dir / BUILD_ENTRY, 'wb') as f:
            self.control_plane.build_export(app, build_id, f)

    def _export_resource(self, app, name, work_dir):
        target = work_dir / resource_entry(name)
        stream = self.control_plane.resource_export(app, name)
        try:
            with open(target, 'wb') as f:
                shutil.copyfileobj(stream, f, CHUNK_SIZE)
        finally:
            close = getattr(stream, 'close', None)
            if close:
                close()
