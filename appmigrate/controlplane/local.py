#!/usr/bin/env python3
"""
Local control plane for mock/development mode.

Keeps application state as a YAML document per app under a state directory,
with build and resource payloads stored next to it. Every mutation settles
immediately, so applications are always reported as running.
"""

import shutil
import uuid
from pathlib import Path

import yaml

from .base import ControlPlane
from .models import App, Build, Release, Resource
from ..errors import ConflictError, NotFoundError

CHUNK_SIZE = 64 * 1024


def _generate_id(prefix):
    return f"{prefix}{uuid.uuid4().hex[:10].upper()}"


class LocalControlPlane(ControlPlane):
    """File-backed rack used for dry runs and end-to-end tests."""

    def __init__(self, state_dir):
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _app_dir(self, name):
        return self.state_dir / 'apps' / name

    def _load(self, name):
        state_file = self._app_dir(name) / 'state.yaml'
        if not state_file.exists():
            raise NotFoundError(f"no such app: {name}")
        with open(state_file, 'r') as f:
            return yaml.safe_load(f)

    def _save(self, name, state):
        app_dir = self._app_dir(name)
        app_dir.mkdir(parents=True, exist_ok=True)
        with open(app_dir / 'state.yaml', 'w') as f:
            yaml.safe_dump(state, f, default_flow_style=False, sort_keys=False)

    def _release(self, state, release_id):
        for release in state['releases']:
            if release['id'] == release_id:
                return release
        return None

    def app_create(self, name, generation=None):
        if (self._app_dir(name) / 'state.yaml').exists():
            raise ConflictError(f"app already exists: {name}")

        state = {
            'app': {
                'name': name,
                'status': 'running',
                'generation': str(generation or '2'),
                'release': '',
                'router': '',
                'locked': False,
                'parameters': {},
            },
            'releases': [],
            'builds': {},
            'resources': [],
        }
        self._save(name, state)
        return App.from_dict(state['app'])

    def app_get(self, name):
        return App.from_dict(self._load(name)['app'])

    def app_list(self):
        apps_dir = self.state_dir / 'apps'
        if not apps_dir.exists():
            return []
        names = sorted(p.parent.name for p in apps_dir.glob('*/state.yaml'))
        return [self.app_get(name) for name in names]

    def app_cancel(self, name):
        app = self.app_get(name)
        if not app.transitional:
            raise ConflictError(f"app is not updating: {name}")

    def app_update(self, name, parameters):
        state = self._load(name)
        state['app']['parameters'].update({str(k): str(v) for k, v in parameters.items()})
        self._save(name, state)

    def app_delete(self, name):
        self._load(name)
        shutil.rmtree(self._app_dir(name))

    def build_import(self, app, stream):
        state = self._load(app)
        build_id = _generate_id('B')
        builds_dir = self._app_dir(app) / 'builds'
        builds_dir.mkdir(exist_ok=True)
        with open(builds_dir / f"{build_id}.tgz", 'wb') as f:
            shutil.copyfileobj(stream, f, CHUNK_SIZE)

        previous = state['releases'][-1] if state['releases'] else {}
        release = {'id': _generate_id('R'), 'build': build_id, 'env': previous.get('env', '')}
        state['releases'].append(release)
        state['builds'][build_id] = release['id']
        self._save(app, state)
        return Build(id=build_id, release=release['id'])

    def build_export(self, app, build_id, stream):
        state = self._load(app)
        if build_id not in state['builds']:
            raise NotFoundError(f"no such build: {build_id}")
        with open(self._app_dir(app) / 'builds' / f"{build_id}.tgz", 'rb') as f:
            shutil.copyfileobj(f, stream, CHUNK_SIZE)

    def release_get(self, app, release_id):
        release = self._release(self._load(app), release_id)
        if release is None:
            raise NotFoundError(f"no such release: {release_id}")
        return Release.from_dict(release)

    def release_create(self, app, env):
        state = self._load(app)
        previous = state['releases'][-1] if state['releases'] else {}
        release = {'id': _generate_id('R'), 'build': previous.get('build', ''), 'env': env}
        state['releases'].append(release)
        self._save(app, state)
        return Release.from_dict(release)

    def release_promote(self, app, release_id):
        state = self._load(app)
        if self._release(state, release_id) is None:
            raise NotFoundError(f"no such release: {release_id}")
        state['app']['release'] = release_id
        self._save(app, state)

    def resource_list(self, app):
        return [Resource.from_dict(r) for r in self._load(app)['resources']]

    def resource_export(self, app, name):
        state = self._load(app)
        if not any(r['name'] == name for r in state['resources']):
            raise NotFoundError(f"no such resource: {name}")
        return open(self._app_dir(app) / 'resources' / f"{name}.data", 'rb')

    def resource_import(self, app, name, stream):
        state = self._load(app)
        resources_dir = self._app_dir(app) / 'resources'
        resources_dir.mkdir(exist_ok=True)
        with open(resources_dir / f"{name}.data", 'wb') as f:
            shutil.copyfileobj(stream, f, CHUNK_SIZE)

        if not any(r['name'] == name for r in state['resources']):
            state['resources'].append({'name': name, 'type': None})
            self._save(app, state)
