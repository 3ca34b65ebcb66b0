#!/usr/bin/env python3
"""
Bundle archive operations.

A bundle is a gzip-compressed tar archive holding one application's
exportable state:

    manifest.yaml              bundle format version and entry list
    app.json                   application descriptor (no status)
    env                        release environment, KEY=VALUE lines (optional)
    build.tgz                  build export stream (optional)
    resource-<name>.export     one per bound resource (optional)

Packing is deterministic: entries are sorted and all timestamps and owners
are zeroed, so payload bytes survive any number of pack/unpack round trips.
"""

import gzip
import io
import json
import os
import re
import shutil
import tarfile
import tempfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Dict, Optional

import yaml

from ..config.validation import validate_descriptor
from ..errors import DecodeError

BUNDLE_VERSION = '1'
SUPPORTED_BUNDLE_VERSIONS = ('1',)

MANIFEST_ENTRY = 'manifest.yaml'
APP_ENTRY = 'app.json'
ENV_ENTRY = 'env'
BUILD_ENTRY = 'build.tgz'
RESOURCE_PREFIX = 'resource-'
RESOURCE_SUFFIX = '.export'

RESOURCE_NAME_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')
CHUNK_SIZE = 64 * 1024


def resource_entry(name):
    if not RESOURCE_NAME_PATTERN.match(name) or name.endswith(RESOURCE_SUFFIX):
        raise ValueError(f"Invalid resource name: {name!r}")
    return f"{RESOURCE_PREFIX}{name}{RESOURCE_SUFFIX}"


def _archive_order(source_dir):
    """Files under source_dir, manifest first, then sorted by relative path."""
    files = [p for p in source_dir.rglob('*') if p.is_file()]
    return sorted(
        files,
        key=lambda p: (p.relative_to(source_dir).as_posix() != MANIFEST_ENTRY,
                       p.relative_to(source_dir).as_posix()),
    )


def _write_tar(source_dir, fileobj):
    source_dir = Path(source_dir)
    with gzip.GzipFile(filename='', mode='wb', fileobj=fileobj, mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode='w', format=tarfile.PAX_FORMAT) as tar:
            for path in _archive_order(source_dir):
                info = tarfile.TarInfo(path.relative_to(source_dir).as_posix())
                info.size = path.stat().st_size
                info.mode = 0o644
                info.mtime = 0
                info.uid = info.gid = 0
                info.uname = info.gname = ''
                with open(path, 'rb') as f:
                    tar.addfile(info, f)


def pack(source_dir):
    """Pack every file under source_dir into gzip-compressed tar bytes."""
    buffer = io.BytesIO()
    _write_tar(source_dir, buffer)
    return buffer.getvalue()


def _check_member(member):
    parts = PurePosixPath(member.name).parts
    if member.name.startswith('/') or '..' in parts:
        raise DecodeError(member.name, "entry escapes the bundle directory")
    if not (member.isfile() or member.isdir()):
        raise DecodeError(member.name, "unsupported entry type (links and devices are not allowed)")


def _check_trailer(tar, last):
    """
    Everything after the last member must be zero padding.

    tarfile stops silently on a bad header that is not the first one, so a
    non-zero block here is a corrupt entry, named from its header if possible.
    """
    tar.fileobj.seek(tar.offset)
    header = tar.fileobj.read(tarfile.BLOCKSIZE)
    block = header
    while block:
        if block.strip(b'\0'):
            name = header[:100].split(b'\0', 1)[0].decode('utf-8', 'replace').strip()
            raise DecodeError(name or f"entry after {last}", "corrupt entry header")
        block = tar.fileobj.read(CHUNK_SIZE)


def _extract(fileobj, dest_dir, source):
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    try:
        tar = tarfile.open(fileobj=fileobj, mode='r:gz')
    except (tarfile.TarError, EOFError, OSError, zlib.error) as e:
        raise DecodeError(source, f"not a gzip-compressed tar archive ({e})") from e

    with tar:
        current = source
        try:
            while True:
                member = tar.next()
                if member is None:
                    break
                current = member.name
                _check_member(member)

                target = dest_dir / member.name
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                extracted = tar.extractfile(member)
                with open(target, 'wb') as f:
                    shutil.copyfileobj(extracted, f, CHUNK_SIZE)
                if target.stat().st_size != member.size:
                    raise DecodeError(member.name, "truncated entry")

            _check_trailer(tar, current)
        except (tarfile.TarError, EOFError, gzip.BadGzipFile, zlib.error) as e:
            raise DecodeError(current, f"truncated or corrupt entry ({e})") from e


def unpack(data, dest_dir, source='<archive>'):
    """
    Unpack gzip-compressed tar bytes into dest_dir.

    Any malformed input (bad compression header, truncated entry, corrupt
    header, unsafe path) raises DecodeError naming the offending entry, or
    source when the archive itself cannot be opened.
    """
    _extract(io.BytesIO(data), dest_dir, source)


def pack_file(source_dir, archive_path):
    """Stream source_dir into archive_path; the file appears only once complete."""
    archive_path = Path(archive_path)
    archive_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=archive_path.parent, prefix=f".{archive_path.name}.")
    try:
        with os.fdopen(fd, 'wb') as f:
            _write_tar(source_dir, f)
        os.replace(temp_path, archive_path)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise
    return archive_path


def unpack_file(archive_path, dest_dir):
    archive_path = Path(archive_path)
    try:
        f = open(archive_path, 'rb')
    except FileNotFoundError as e:
        raise DecodeError(str(archive_path), "bundle file not found") from e
    with f:
        _extract(f, dest_dir, str(archive_path))


@dataclass
class Bundle:
    """An unpacked bundle. Optional parts are None when absent from the archive."""

    directory: Path
    app: dict
    env: Optional[str] = None
    build: Optional[Path] = None
    resources: Dict[str, Path] = field(default_factory=dict)
    manifest: Optional[dict] = None

    @property
    def name(self):
        return self.app.get('name', '')

    @property
    def generation(self):
        return self.app.get('generation')

    @property
    def parameters(self):
        return self.app.get('parameters') or {}


def write_descriptor(directory, descriptor):
    descriptor = {k: v for k, v in descriptor.items() if k != 'status'}
    with open(Path(directory) / APP_ENTRY, 'w') as f:
        f.write(json.dumps(descriptor, sort_keys=True))


def write_manifest(directory, app_name):
    """Write manifest.yaml listing every entry already in directory."""
    directory = Path(directory)
    entries = sorted(p.name for p in directory.iterdir() if p.is_file() and p.name != MANIFEST_ENTRY)
    manifest = {
        'bundle_version': BUNDLE_VERSION,
        'app': app_name,
        'exported_at': datetime.now().isoformat(),
        'entries': entries,
    }
    with open(directory / MANIFEST_ENTRY, 'w') as f:
        yaml.safe_dump(manifest, f, default_flow_style=False, sort_keys=False)
    return manifest


def _load_manifest(directory):
    manifest_path = directory / MANIFEST_ENTRY
    if not manifest_path.exists():
        return None
    try:
        with open(manifest_path, 'r') as f:
            manifest = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DecodeError(MANIFEST_ENTRY, f"invalid YAML ({e})") from e

    if not isinstance(manifest, dict):
        raise DecodeError(MANIFEST_ENTRY, "manifest must be a mapping")
    version = str(manifest.get('bundle_version', ''))
    if version not in SUPPORTED_BUNDLE_VERSIONS:
        raise DecodeError(MANIFEST_ENTRY, f"unsupported bundle version: {version or 'missing'}")

    entries = manifest.get('entries') or []
    if not isinstance(entries, list):
        raise DecodeError(MANIFEST_ENTRY, "entries must be a list")
    for entry in entries:
        if not isinstance(entry, str) or PurePosixPath(entry).name != entry or entry in ('.', '..'):
            raise DecodeError(MANIFEST_ENTRY, f"invalid entry name: {entry!r}")
        if not (directory / entry).is_file():
            raise DecodeError(entry, "listed in manifest but missing")
    return manifest


def _load_descriptor(directory):
    app_path = directory / APP_ENTRY
    if not app_path.exists():
        raise DecodeError(APP_ENTRY, "missing application descriptor")
    try:
        descriptor = json.loads(app_path.read_text(encoding='utf-8'))
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(APP_ENTRY, f"invalid JSON ({e})") from e

    is_valid, errors = validate_descriptor(descriptor)
    if not is_valid:
        raise DecodeError(APP_ENTRY, '; '.join(errors))
    return descriptor


def load_bundle(directory):
    """Read an unpacked bundle directory into a Bundle."""
    directory = Path(directory)
    manifest = _load_manifest(directory)
    descriptor = _load_descriptor(directory)

    env = None
    env_path = directory / ENV_ENTRY
    if env_path.exists():
        try:
            with open(env_path, 'r', encoding='utf-8', newline='') as f:
                env = f.read()
        except UnicodeDecodeError as e:
            raise DecodeError(ENV_ENTRY, f"environment is not UTF-8 text ({e})") from e

    build_path = directory / BUILD_ENTRY
    resources = {}
    for path in sorted(directory.glob(f"{RESOURCE_PREFIX}*{RESOURCE_SUFFIX}")):
        name = path.name[len(RESOURCE_PREFIX):-len(RESOURCE_SUFFIX)]
        if not RESOURCE_NAME_PATTERN.match(name):
            raise DecodeError(path.name, f"invalid resource name: {name!r}")
        resources[name] = path

    return Bundle(
        directory=directory,
        app=descriptor,
        env=env,
        build=build_path if build_path.exists() else None,
        resources=resources,
        manifest=manifest,
    )


def read_bundle(archive_path, work_dir):
    """Unpack archive_path into work_dir and load it. Nothing remote is touched."""
    unpack_file(archive_path, work_dir)
    return load_bundle(work_dir)
