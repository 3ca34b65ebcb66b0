#!/usr/bin/env python3
"""
Control-plane records as seen by the migration pipeline.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

TRANSITIONAL_STATUSES = frozenset({'creating', 'updating', 'deleting'})


@dataclass
class App:
    name: str
    status: str = ''
    generation: str = '2'
    release: str = ''
    router: str = ''
    locked: bool = False
    parameters: Dict[str, str] = field(default_factory=dict)

    @property
    def transitional(self):
        return self.status in TRANSITIONAL_STATUSES

    def descriptor(self):
        """Exportable fields: everything except the status."""
        return {
            'name': self.name,
            'generation': self.generation,
            'release': self.release,
            'router': self.router,
            'locked': self.locked,
            'parameters': dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get('name', ''),
            status=data.get('status', ''),
            generation=str(data.get('generation') or '2'),
            release=data.get('release') or '',
            router=data.get('router') or '',
            locked=bool(data.get('locked', False)),
            parameters={str(k): str(v) for k, v in (data.get('parameters') or {}).items()},
        )


@dataclass
class Build:
    id: str
    release: str = ''

    @classmethod
    def from_dict(cls, data):
        return cls(id=data.get('id', ''), release=data.get('release') or '')


@dataclass
class Release:
    id: str
    build: str = ''
    env: str = ''

    @classmethod
    def from_dict(cls, data):
        return cls(id=data.get('id', ''), build=data.get('build') or '', env=data.get('env') or '')


@dataclass
class Resource:
    name: str
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        return cls(name=data.get('name', ''), type=data.get('type'))
