#!/usr/bin/env python3
"""
Application Migration Orchestrator
Exports applications into portable bundles and imports them into a rack
"""

import argparse
import sys
import tempfile
from pathlib import Path

from .apps import (
    app_info, app_parameters, cancel_app, create_app, delete_app,
    list_apps, set_parameters,
)
from .archive import read_bundle
from .export import Exporter
from .importer import Importer
from .poller import StatusPoller
from .utils import load_config, parse_env, parse_parameters
from ..config.validation import validate_config
from ..controlplane import get_control_plane
from ..errors import ConfigurationError, DecodeError, MigrationError
from ..storage import bundle_storage_key, get_storage_backend


def _print_phase(title):
    """Helper to print phase headers."""
    print(f"\n{'='*60}")
    print(title)
    print(f"{'='*60}")


def _load_valid_config(config_path):
    config = load_config(config_path)
    is_valid, errors = validate_config(config)
    if not is_valid:
        raise ConfigurationError("Invalid configuration:\n" + '\n'.join(f"  - {e}" for e in errors))
    return config


def _rack(config):
    control_plane = get_control_plane(config)
    return control_plane, StatusPoller.from_config(control_plane, config)


def export_command(config, app, bundle_file, upload=False):
    """Export app into bundle_file, optionally storing it in the storage backend."""
    _print_phase(f"EXPORT {app}")
    control_plane = get_control_plane(config)
    output = Exporter(control_plane).export(app, bundle_file)

    location = str(output)
    if upload:
        storage = get_storage_backend(config)
        location = storage.upload_file(output, bundle_storage_key(app, output))

    print(f"\n[OK] Exported {app} to {location}")
    return location


def import_command(config, app=None, bundle_file=None, storage_key=None, timeout=None):
    """Import a bundle file (or a stored bundle) as app. Returns ImportResult."""
    control_plane, poller = _rack(config)
    importer = Importer(control_plane, poller, wait_timeout=timeout)

    with tempfile.TemporaryDirectory(prefix='appmigrate-fetch-') as tmp:
        if storage_key:
            bundle_file = get_storage_backend(config).download_file(
                storage_key, Path(tmp) / Path(storage_key).name
            )

        _print_phase(f"IMPORT {app or Path(bundle_file).name}")
        result = importer.import_file(bundle_file, app)

    if result.ok:
        print(f"\n[OK] Imported {result.app} ({len(result.completed)} stages, {len(result.skipped)} skipped)")
    else:
        print(f"\n[FAILED] Import of {result.app} stopped at stage '{result.failed_stage}'")
        print(f"  Completed: {', '.join(result.completed) or 'none'}")
    return result


def validate_command(bundle_file):
    """Decode a bundle without touching any rack. Returns (is_valid, errors)."""
    _print_phase(f"VALIDATING BUNDLE {Path(bundle_file).name}")
    errors = []

    with tempfile.TemporaryDirectory(prefix='appmigrate-validate-') as tmp:
        try:
            bundle = read_bundle(bundle_file, Path(tmp))
        except DecodeError as e:
            errors.append(str(e))
        else:
            if bundle.env is not None:
                try:
                    parse_env(bundle.env)
                except ValueError as e:
                    errors.append(f"env: {e}")

            print(f"  App:        {bundle.name} (generation {bundle.generation})")
            print(f"  Env:        {'present' if bundle.env is not None else 'absent'}")
            print(f"  Build:      {'present' if bundle.build else 'absent'}")
            print(f"  Resources:  {', '.join(bundle.resources) or 'none'}")
            print(f"  Parameters: {len(bundle.parameters)}")

    if errors:
        print("[FAILED] Bundle validation failed")
        for error in errors:
            print(f"  - {error}")
    else:
        print("[OK] Bundle is valid")
    return len(errors) == 0, errors


def create_command(config, app, generation=None):
    control_plane, poller = _rack(config)
    return create_app(control_plane, poller, app, generation)


def delete_command(config, app):
    control_plane, poller = _rack(config)
    return delete_app(control_plane, poller, app)


def params_set_command(config, app, pairs):
    control_plane, poller = _rack(config)
    changes = set_parameters(control_plane, poller, app, parse_parameters(pairs))
    if not changes:
        print("Parameters unchanged")
    return changes


def _print_pairs(rows):
    if not rows:
        return
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        print(f"{label.ljust(width)}  {value}")


def _print_table(headers, rows):
    """Print rows under headers with columns padded to their widest cell."""
    widths = [max(len(str(cell)) for cell in column) for column in zip(headers, *rows)]
    for row in [headers] + list(rows):
        print('  '.join(str(cell).ljust(width) for cell, width in zip(row, widths)).rstrip())


def info_command(config, app):
    rows = app_info(get_control_plane(config), app)
    _print_pairs(rows)
    return rows


def list_command(config):
    rows = list_apps(get_control_plane(config))
    _print_table(('APP', 'STATUS', 'RELEASE'), rows)
    return rows


def params_command(config, app):
    rows = app_parameters(get_control_plane(config), app)
    _print_pairs(rows)
    return rows


def cancel_command(config, app):
    cancel_app(get_control_plane(config), app)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Application Migration Orchestrator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Move an application between racks
  appmigrate export --app app1 --file app1.tgz
  appmigrate --config target.yaml import --app app1 --file app1.tgz

  # Keep exports in the configured storage backend
  appmigrate export --app app1 --file app1.tgz --upload
  appmigrate import --app app1 --key app1/app1.tgz

  # Check a bundle before importing it
  appmigrate validate --file app1.tgz
        """
    )
    parser.add_argument('--config', help='Config file (default: config/migration-config.yaml)')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('export', help='Export an app into a bundle')
    p.add_argument('--app', required=True)
    p.add_argument('--file', required=True, help='Bundle file to write')
    p.add_argument('--upload', action='store_true', help='Store the bundle in the storage backend')

    p = sub.add_parser('import', help='Import a bundle into an app')
    p.add_argument('--app', help='Target app (default: name recorded in the bundle)')
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument('--file', help='Bundle file to read')
    source.add_argument('--key', help='Storage key of a stored bundle')
    p.add_argument('--timeout', type=float, help='Seconds to wait for each status change')

    p = sub.add_parser('validate', help='Validate a bundle file')
    p.add_argument('--file', required=True)

    p = sub.add_parser('create', help='Create an app and wait until ready')
    p.add_argument('--app', required=True)
    p.add_argument('--generation', help='App generation (e.g., 1 or 2)')

    p = sub.add_parser('delete', help='Delete an app and wait until gone')
    p.add_argument('--app', required=True)

    p = sub.add_parser('params-set', help='Update app parameters')
    p.add_argument('--app', required=True)
    p.add_argument('pairs', nargs='+', metavar='KEY=VALUE')

    p = sub.add_parser('info', help='Show app details')
    p.add_argument('--app', required=True)

    sub.add_parser('list', help='List apps on the rack')

    p = sub.add_parser('params', help='Show app parameters (passwords masked)')
    p.add_argument('--app', required=True)

    p = sub.add_parser('cancel', help='Cancel an in-progress deployment')
    p.add_argument('--app', required=True)

    return parser


def main(argv=None):
    """Main entry point - parse command line and run the command. Returns exit code."""
    args = build_parser().parse_args(argv)

    try:
        if args.command == 'validate':
            is_valid, _ = validate_command(args.file)
            return 0 if is_valid else 1

        config = _load_valid_config(args.config)

        if args.command == 'export':
            export_command(config, args.app, args.file, args.upload)
        elif args.command == 'import':
            result = import_command(config, args.app, args.file, args.key, args.timeout)
            if not result.ok:
                print(f"ERROR: {result.error}", file=sys.stderr)
                return 1
        elif args.command == 'create':
            create_command(config, args.app, args.generation)
        elif args.command == 'delete':
            delete_command(config, args.app)
        elif args.command == 'params-set':
            params_set_command(config, args.app, args.pairs)
        elif args.command == 'info':
            info_command(config, args.app)
        elif args.command == 'list':
            list_command(config)
        elif args.command == 'params':
            params_command(config, args.app)
        elif args.command == 'cancel':
            cancel_command(config, args.app)
    except MigrationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
