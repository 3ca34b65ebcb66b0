import gzip
import io
import itertools
import json
import tarfile
from collections import deque

import pytest

from appmigrate.controlplane.base import ControlPlane
from appmigrate.controlplane.models import App, Build, Release, Resource
from appmigrate.errors import NotFoundError
from appmigrate.migration.archive import (
    APP_ENTRY, BUILD_ENTRY, ENV_ENTRY, load_bundle, pack_file,
    resource_entry, write_manifest,
)
from appmigrate.migration.poller import StatusPoller

MUTATING_CALLS = (
    'app_create', 'app_update', 'app_delete', 'app_cancel', 'build_import',
    'release_create', 'release_promote', 'resource_import',
)


def corrupt_header(archive, entry):
    """Return archive bytes with a bad checksum in the tar header of entry."""
    raw = bytearray(gzip.decompress(archive))
    with tarfile.open(fileobj=io.BytesIO(bytes(raw))) as tar:
        offset = tar.getmember(entry).offset
    raw[offset + 148:offset + 156] = b'0000000\x00'
    return gzip.compress(bytes(raw))


class FakeControlPlane(ControlPlane):
    """Records every call; app_get can replay scripted statuses."""

    def __init__(self):
        self.calls = []
        self.apps = {}
        self.deleted = set()
        self.statuses = {}
        self.releases = {}
        self.builds = {}
        self.resources = {}
        self.failures = {}
        self.failing_resources = {}
        self.default_parameters = {}
        self.next_build = Build(id='build1', release='release1')
        self.next_release = 'release1'
        self.imported_builds = []
        self.imported_resources = {}
        self.created_envs = []

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def call_names(self):
        return [call[0] for call in self.calls]

    def mutations(self):
        return [name for name in self.call_names() if name in MUTATING_CALLS]

    def add_app(self, app):
        self.apps[app.name] = app

    def script_statuses(self, name, *statuses):
        self.statuses.setdefault(name, deque()).extend(statuses)

    def app_create(self, name, generation=None):
        self._call('app_create', name, generation)
        app = App(
            name=name, status='running', generation=generation or '2',
            parameters=dict(self.default_parameters),
        )
        self.apps[name] = app
        return app

    def app_list(self):
        self._call('app_list')
        return [self.apps[name] for name in sorted(self.apps)]

    def app_cancel(self, name):
        self._call('app_cancel', name)
        if name not in self.apps:
            raise NotFoundError(f"no such app: {name}")

    def app_get(self, name):
        self._call('app_get', name)
        queue = self.statuses.get(name)
        if queue and (name in self.apps or name in self.deleted):
            status = queue.popleft()
            base = self.apps.get(name) or App(name=name)
            return App(**{**base.__dict__, 'status': status})
        if name not in self.apps:
            raise NotFoundError(f"no such app: {name}")
        app = self.apps[name]
        return App(**{**app.__dict__, 'parameters': dict(app.parameters)})

    def app_update(self, name, parameters):
        self._call('app_update', name, dict(parameters))
        self.apps[name].parameters.update(parameters)

    def app_delete(self, name):
        self._call('app_delete', name)
        self.apps.pop(name)
        self.deleted.add(name)

    def build_import(self, app, stream):
        self._call('build_import', app)
        self.imported_builds.append(stream.read())
        return self.next_build

    def build_export(self, app, build_id, stream):
        self._call('build_export', app, build_id)
        if build_id not in self.builds:
            raise NotFoundError(f"no such build: {build_id}")
        stream.write(self.builds[build_id])

    def release_get(self, app, release_id):
        self._call('release_get', app, release_id)
        if release_id not in self.releases:
            raise NotFoundError(f"no such release: {release_id}")
        return self.releases[release_id]

    def release_create(self, app, env):
        self._call('release_create', app, env)
        self.created_envs.append(env)
        return Release(id=self.next_release, build=self.next_build.id, env=env)

    def release_promote(self, app, release_id):
        self._call('release_promote', app, release_id)
        self.apps[app].release = release_id

    def resource_list(self, app):
        self._call('resource_list', app)
        return [Resource(name=name) for name in self.resources.get(app, {})]

    def resource_export(self, app, name):
        self._call('resource_export', app, name)
        if name in self.failing_resources:
            raise self.failing_resources[name]
        return io.BytesIO(self.resources[app][name])

    def resource_import(self, app, name, stream):
        self._call('resource_import', app, name)
        if name in self.failing_resources:
            raise self.failing_resources[name]
        self.imported_resources[name] = stream.read()


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake():
    return FakeControlPlane()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def poller(fake, clock):
    return StatusPoller(fake, interval=1, timeout=30, clock=clock)


@pytest.fixture
def make_bundle(tmp_path):
    """
    Build a bundle directory and return the loaded Bundle, or the packed
    archive path when archive=True.
    """
    counter = itertools.count()

    def _make(name='app1', generation='2', env=None, build=None, resources=None,
              parameters=None, archive=False):
        index = next(counter)
        directory = tmp_path / f"bundle{index}"
        directory.mkdir()

        descriptor = {
            'name': name, 'generation': generation, 'locked': False,
            'release': 'release1', 'router': '', 'parameters': parameters or {},
        }
        (directory / APP_ENTRY).write_text(json.dumps(descriptor))
        if env is not None:
            (directory / ENV_ENTRY).write_text(env)
        if build is not None:
            (directory / BUILD_ENTRY).write_bytes(build)
        for resource, data in (resources or {}).items():
            (directory / resource_entry(resource)).write_bytes(data)
        write_manifest(directory, name)

        if archive:
            return pack_file(directory, tmp_path / f"app{index}.tgz")
        return load_bundle(directory)

    return _make
