"""
Export and import orchestration package.

This package contains the bundle codec, status poller, parameter differ and
the orchestrators that move an application between racks.
"""

__all__ = ['archive', 'export', 'importer', 'poller', 'params', 'apps', 'orchestrator', 'utils']
