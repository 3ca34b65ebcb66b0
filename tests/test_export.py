import json
import os

import pytest

from appmigrate.controlplane.models import App, Release
from appmigrate.errors import DecodeError, NotFoundError, StageError, TransportError
from appmigrate.migration.archive import load_bundle, unpack_file
from appmigrate.migration.export import Exporter
from tests.conftest import MUTATING_CALLS

BUILD_DATA = os.urandom(2048)


@pytest.fixture
def source(fake):
    fake.add_app(App(
        name='app1', status='running', generation='2', release='release1',
        parameters={'ParamFoo': 'value1', 'ParamOther': 'value2'},
    ))
    fake.releases['release1'] = Release(id='release1', build='build1', env='FOO=bar\nBAZ=quux')
    fake.builds['build1'] = BUILD_DATA
    fake.resources['app1'] = {'resource1': b'resourcedata\n'}
    return fake


def test_export_app_with_release_build_and_resource(source, tmp_path, capsys):
    path = Exporter(source).export('app1', tmp_path / 'app.tgz')

    assert capsys.readouterr().out.splitlines() == [
        "Exporting app app1... OK",
        "Exporting env... OK",
        "Exporting build build1... OK",
        "Exporting resource resource1... OK",
        "Packaging export... OK",
    ]

    unpack_file(path, tmp_path / 'out')
    descriptor = json.loads((tmp_path / 'out' / 'app.json').read_text())
    assert descriptor == {
        'generation': '2', 'locked': False, 'name': 'app1', 'release': 'release1',
        'router': '', 'parameters': {'ParamFoo': 'value1', 'ParamOther': 'value2'},
    }
    assert 'status' not in descriptor
    assert (tmp_path / 'out' / 'env').read_text() == "FOO=bar\nBAZ=quux"
    assert (tmp_path / 'out' / 'build.tgz').read_bytes() == BUILD_DATA

    bundle = load_bundle(tmp_path / 'out')
    assert list(bundle.resources) == ['resource1']
    assert bundle.resources['resource1'].read_bytes() == b'resourcedata\n'
    assert bundle.manifest['app'] == 'app1'


def test_export_is_read_only(source, tmp_path):
    Exporter(source).export('app1', tmp_path / 'app.tgz')
    assert not [name for name in source.call_names() if name in MUTATING_CALLS]


def test_app_without_release_exports_no_env_or_build(fake, tmp_path, capsys):
    fake.add_app(App(name='app1', status='running'))

    path = Exporter(fake).export('app1', tmp_path / 'app.tgz')

    assert capsys.readouterr().out.splitlines() == [
        "Exporting app app1... OK",
        "Packaging export... OK",
    ]
    unpack_file(path, tmp_path / 'out')
    bundle = load_bundle(tmp_path / 'out')
    assert bundle.env is None
    assert bundle.build is None
    assert bundle.resources == {}
    assert 'build_export' not in fake.call_names()


def test_release_without_build_skips_build_export(fake, tmp_path):
    fake.add_app(App(name='app1', status='running', release='release1'))
    fake.releases['release1'] = Release(id='release1', env='FOO=bar\n')

    path = Exporter(fake).export('app1', tmp_path / 'app.tgz')

    unpack_file(path, tmp_path / 'out')
    bundle = load_bundle(tmp_path / 'out')
    assert bundle.env == 'FOO=bar\n'
    assert bundle.build is None


def test_missing_app_fails_fast(fake, tmp_path):
    with pytest.raises(StageError) as exc:
        Exporter(fake).export('app1', tmp_path / 'app.tgz')

    assert exc.value.stage == 'export-app'
    assert isinstance(exc.value.cause, NotFoundError)
    assert fake.call_names() == ['app_get']
    assert not (tmp_path / 'app.tgz').exists()


def test_resource_failure_aborts_whole_export(source, tmp_path):
    source.resources['app1']['resource2'] = b'more'
    source.failing_resources['resource2'] = TransportError('err1')

    with pytest.raises(StageError) as exc:
        Exporter(source).export('app1', tmp_path / 'app.tgz')

    assert exc.value.stage == 'export-resource resource2'
    assert str(exc.value) == 'export-resource resource2: err1'
    assert list(tmp_path.iterdir()) == []


def test_build_export_failure_is_tagged(source, tmp_path):
    source.failures['build_export'] = TransportError('stream reset')

    with pytest.raises(StageError) as exc:
        Exporter(source).export('app1', tmp_path / 'app.tgz')

    assert exc.value.stage == 'export-build'
    assert 'resource_list' not in source.call_names()


def test_descriptor_that_would_not_import_fails_packaging(fake, tmp_path, capsys):
    fake.add_app(App(name='Bad_App', status='running'))

    with pytest.raises(StageError) as exc:
        Exporter(fake).export('Bad_App', tmp_path / 'app.tgz')

    assert exc.value.stage == 'package'
    assert isinstance(exc.value.cause, DecodeError)
    assert exc.value.cause.path == 'app.json'
    assert capsys.readouterr().out.splitlines()[-1] == "Packaging export... "
    assert list(tmp_path.iterdir()) == []
