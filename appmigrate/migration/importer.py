#!/usr/bin/env python3
"""
Import orchestrator: reconstitutes an application from a bundle.

The import is a linear plan of stages. Each stage is a descriptor with an
optional skip condition, an optional precondition and an action; stages run
strictly in order and every remote mutation is followed by a wait until the
app leaves its transitional status, because the rack rejects overlapping
mutations. The first failing stage stops the run. Completed stages are not
rolled back.
"""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .archive import Bundle, read_bundle
from .params import diff_parameters
from .utils import start_step, step_ok
from ..controlplane.models import Build
from ..errors import ConflictError, NotFoundError, StageError


@dataclass
class ImportContext:
    """Mutable state threaded through the stages of one import run."""

    app: str
    bundle: Bundle
    build: Optional[Build] = None
    release: Optional[str] = None
    promoted: bool = False
    imported_resources: List[str] = field(default_factory=list)
    changes: Optional[Dict[str, str]] = None
    updated: bool = False


@dataclass(frozen=True)
class Stage:
    """
    One step of the import plan.

    skip(ctx) returns a reason string when the stage must not run.
    precondition(importer, ctx) raises when the stage may not run.
    action(importer, ctx) performs the step and may return a detail string.
    title(ctx) is the progress line; stages without a title are silent.
    """

    name: str
    action: Callable
    skip: Optional[Callable] = None
    precondition: Optional[Callable] = None
    title: Optional[Callable] = None


@dataclass
class ImportResult:
    app: str
    completed: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.error is None


# Preconditions

def _target_absent(importer, ctx):
    try:
        importer.control_plane.app_get(ctx.app)
    except NotFoundError:
        return
    raise ConflictError(f"app already exists: {ctx.app}")


# Skip conditions

def _no_build(ctx):
    if ctx.bundle.build is None:
        return "bundle has no build payload"


def _no_build_or_env(ctx):
    if ctx.bundle.build is None and ctx.bundle.env is None:
        return "bundle has no build payload or environment"


def _no_release(ctx):
    if not ctx.release:
        return "no release to promote"


def _not_promoted(ctx):
    if not ctx.promoted:
        return "no release promoted"


def _no_resources(ctx):
    if not ctx.bundle.resources:
        return "bundle has no resource payloads"


def _no_imported_resources(ctx):
    if not ctx.imported_resources:
        return "no resources imported"


def _no_parameters(ctx):
    if not ctx.bundle.parameters:
        return "bundle has no parameters"


def _no_changes(ctx):
    if ctx.changes is None:
        return "bundle has no parameters"
    if not ctx.changes:
        return "parameters unchanged"


def _not_updated(ctx):
    if not ctx.updated:
        return "no parameters updated"


# Actions

def _create_app(importer, ctx):
    importer.control_plane.app_create(ctx.app, ctx.bundle.generation)


def _await_ready(importer, ctx):
    importer.poller.await_ready(ctx.app, timeout=importer.wait_timeout)


def _import_build(importer, ctx):
    with open(ctx.bundle.build, 'rb') as f:
        ctx.build = importer.control_plane.build_import(ctx.app, f)
    ctx.release = ctx.build.release or ctx.release
    return ctx.build.release or ctx.build.id


def _create_release(importer, ctx):
    release = importer.control_plane.release_create(ctx.app, ctx.bundle.env or '')
    ctx.release = release.id
    return release.id


def _promote(importer, ctx):
    importer.control_plane.release_promote(ctx.app, ctx.release)
    ctx.promoted = True


def _import_resources(importer, ctx):
    for name, path in ctx.bundle.resources.items():
        start_step(f"Importing resource {name}")
        try:
            with open(path, 'rb') as f:
                importer.control_plane.resource_import(ctx.app, name, f)
        except Exception as e:
            raise StageError(f"import-resource {name}", e) from e
        ctx.imported_resources.append(name)
        step_ok()


def _diff_parameters(importer, ctx):
    current = importer.control_plane.app_get(ctx.app).parameters
    ctx.changes = diff_parameters(ctx.bundle.parameters, current)


def _update_parameters(importer, ctx):
    importer.control_plane.app_update(ctx.app, ctx.changes)
    ctx.updated = True


IMPORT_PLAN = (
    Stage('create', _create_app, precondition=_target_absent,
          title=lambda ctx: f"Creating app {ctx.app}"),
    Stage('await-created', _await_ready),
    Stage('import-build', _import_build, skip=_no_build,
          title=lambda ctx: "Importing build"),
    Stage('create-release', _create_release, skip=_no_build_or_env,
          title=lambda ctx: "Importing env"),
    Stage('promote', _promote, skip=_no_release,
          title=lambda ctx: f"Promoting {ctx.release}"),
    Stage('await-promoted', _await_ready, skip=_not_promoted),
    Stage('import-resources', _import_resources, skip=_no_resources),
    Stage('await-resources', _await_ready, skip=_no_imported_resources),
    Stage('diff-parameters', _diff_parameters, skip=_no_parameters),
    Stage('update-parameters', _update_parameters, skip=_no_changes,
          title=lambda ctx: "Updating parameters"),
    Stage('await-updated', _await_ready, skip=_not_updated),
)


class Importer:
    """Runs the import plan against a control plane."""

    def __init__(self, control_plane, poller, plan=IMPORT_PLAN, wait_timeout=None):
        """
        Initialize importer.

        Args:
            control_plane: Target ControlPlane
            poller: StatusPoller bound to the same control plane
            plan: Ordered stage descriptors (IMPORT_PLAN by default)
            wait_timeout: Deadline for each status wait (poller default if None)
        """
        self.control_plane = control_plane
        self.poller = poller
        self.plan = plan
        self.wait_timeout = wait_timeout

    def run(self, bundle, app=None):
        """
        Import an unpacked bundle as app (defaults to the bundle's app name).

        Never raises for a failing stage: the returned ImportResult lists the
        completed and skipped stages and carries the first failure.
        """
        ctx = ImportContext(app=app or bundle.name, bundle=bundle)
        result = ImportResult(app=ctx.app)

        for stage in self.plan:
            reason = stage.skip(ctx) if stage.skip else None
            if reason:
                result.skipped.append((stage.name, reason))
                continue

            try:
                if stage.precondition:
                    stage.precondition(self, ctx)
                if stage.title:
                    start_step(stage.title(ctx))
                detail = stage.action(self, ctx)
            except Exception as e:
                result.failed_stage = stage.name
                result.error = e if isinstance(e, StageError) else StageError(stage.name, e)
                return result

            if stage.title:
                step_ok(detail)
            result.completed.append(stage.name)

        return result

    def import_file(self, archive_path, app=None):
        """
        Unpack archive_path and import it.

        The bundle is decoded completely before the first remote call, so a
        malformed archive raises DecodeError without touching the target.
        """
        with tempfile.TemporaryDirectory(prefix='appmigrate-import-') as tmp:
            bundle = read_bundle(archive_path, Path(tmp))
            return self.run(bundle, app)
