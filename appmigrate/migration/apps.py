#!/usr/bin/env python3
"""
Application lifecycle operations. Mutations wait for the rack to settle.
"""

from .params import diff_parameters
from .utils import start_step, step_ok

SECRET_MARKER = 'Password'
MASKED_VALUE = '****'


def create_app(control_plane, poller, name, generation=None):
    """Create an app and wait until it is ready; returns the terminal status."""
    start_step(f"Creating {name}")
    control_plane.app_create(name, generation)
    status = poller.await_ready(name)
    step_ok()
    return status


def delete_app(control_plane, poller, name):
    """Delete an app and wait until it is gone."""
    start_step(f"Deleting {name}")
    control_plane.app_delete(name)
    status = poller.await_ready(name, deleting=True)
    step_ok()
    return status


def set_parameters(control_plane, poller, name, parameters):
    """
    Update only the parameters that differ from the app's current values.

    Returns the applied changes; an empty dict means no update was issued.
    """
    current = control_plane.app_get(name).parameters
    changes = diff_parameters(parameters, current)
    if not changes:
        return {}

    start_step("Updating parameters")
    control_plane.app_update(name, changes)
    poller.await_ready(name)
    step_ok()
    return changes


def app_info(control_plane, name):
    """Return (label, value) rows describing an app."""
    app = control_plane.app_get(name)
    rows = [
        ('Name', app.name),
        ('Status', app.status),
        ('Generation', app.generation),
        ('Locked', str(app.locked).lower()),
        ('Release', app.release),
    ]
    if app.router:
        rows.append(('Router', app.router))
    return rows


def list_apps(control_plane):
    """Return (name, status, release) rows for every app on the rack."""
    return [(app.name, app.status, app.release) for app in control_plane.app_list()]


def cancel_app(control_plane, name):
    """Cancel an in-progress deployment. Does not wait for the rollback."""
    start_step(f"Cancelling deployment of {name}")
    control_plane.app_cancel(name)
    step_ok()


def app_parameters(control_plane, name):
    """Return sorted (key, value) parameter rows; password values are masked."""
    parameters = control_plane.app_get(name).parameters
    return [
        (key, MASKED_VALUE if SECRET_MARKER in key else value)
        for key, value in sorted(parameters.items())
    ]
