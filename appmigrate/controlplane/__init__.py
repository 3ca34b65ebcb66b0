#!/usr/bin/env python3
"""
Control-plane factory and package exports.
"""

from .base import ControlPlane
from .local import LocalControlPlane
from .models import App, Build, Release, Resource, TRANSITIONAL_STATUSES
from .rack import RackClient
from ..errors import ConfigurationError
from ..migration.utils import get_rack_password


def get_control_plane(config):
    """
    Factory function to create the configured control plane.

    Args:
        config: Migration configuration dict

    Returns:
        RackClient or LocalControlPlane instance
    """
    cp_config = config['control_plane']
    backend = cp_config.get('backend', 'rack')

    if backend == 'rack':
        return RackClient(
            cp_config.get('url'),
            get_rack_password(cp_config),
            timeout=cp_config.get('request_timeout', 60),
        )
    elif backend == 'local':
        return LocalControlPlane(cp_config.get('state_dir', './rack-state'))
    else:
        raise ConfigurationError(f"Unknown control plane backend: {backend}")


__all__ = [
    'ControlPlane', 'RackClient', 'LocalControlPlane', 'get_control_plane',
    'App', 'Build', 'Release', 'Resource', 'TRANSITIONAL_STATUSES',
]
