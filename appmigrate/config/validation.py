#!/usr/bin/env python3
"""
Schema validation for bundle descriptors and migration configuration.
"""

import json
from pathlib import Path

import jsonschema

SCHEMA_DIR = Path(__file__).parent.parent / 'schemas'


def load_schema(name):
    with open(SCHEMA_DIR / name, 'r') as f:
        return json.load(f)


def _format_error(error):
    error_path = ' -> '.join(str(p) for p in error.path) if error.path else 'root'
    return f"Schema validation failed at '{error_path}': {error.message}"


def validate_against_schema(document, schema_name):
    """
    Validate document against a packaged JSON schema.
    Returns (is_valid, errors_list)
    """
    try:
        schema = load_schema(schema_name)
    except (OSError, ValueError) as e:
        return False, [f"Error loading schema file {schema_name}: {e}"]

    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(document), key=lambda e: list(e.path))
    return len(errors) == 0, [_format_error(e) for e in errors]


def validate_descriptor(descriptor):
    """Validate an exported application descriptor (app.json)."""
    if not isinstance(descriptor, dict):
        return False, ["Descriptor must be a JSON object"]
    return validate_against_schema(descriptor, 'app-descriptor-schema.json')


def validate_config(config):
    """
    Validate merged migration configuration.
    Uses JSON schema plus cross-field rules the schema cannot express.
    """
    is_valid, errors = validate_against_schema(config, 'config-schema.json')
    if not is_valid:
        return False, errors

    cp_config = config['control_plane']
    if cp_config['backend'] == 'rack' and not cp_config.get('url'):
        errors.append("control_plane.url is required for the rack backend")

    if config['storage']['backend'] == 's3' and not config.get('s3', {}).get('bucket_name'):
        errors.append("s3.bucket_name is required for the s3 storage backend")

    return len(errors) == 0, errors
