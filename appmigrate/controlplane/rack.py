#!/usr/bin/env python3
"""
HTTP rack client.

Talks to a rack API over HTTPS with basic auth. Build and resource payloads
are streamed in both directions so large artifacts never sit in memory.
"""

import requests

from .base import ControlPlane
from .models import App, Build, Release, Resource
from ..errors import ConflictError, NotFoundError, TransportError

CHUNK_SIZE = 64 * 1024


class RackClient(ControlPlane):
    """ControlPlane implementation backed by the rack HTTP API."""

    def __init__(self, url, password, timeout=60, session=None):
        """
        Initialize rack client.

        Args:
            url: Rack API base URL (e.g., https://rack.example.com)
            password: Rack API password (basic auth, user "convox")
            timeout: Per-request timeout in seconds
            session: requests.Session to reuse (optional, creates new if None)
        """
        if not url:
            raise ValueError("Rack URL is required")

        self.base_url = url.rstrip('/')
        self.timeout = timeout
        self.session = session if session else requests.Session()
        self.session.auth = ('convox', password or '')
        self.session.headers.update({'Version': '20200101000000'})

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        kwargs.setdefault('timeout', self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(self._error_message(response))
        if response.status_code == 409:
            raise ConflictError(self._error_message(response))
        if response.status_code >= 400:
            raise TransportError(self._error_message(response))
        return response

    @staticmethod
    def _error_message(response):
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get('error'):
            return body['error']
        text = (response.text or '').strip()
        return text or f"HTTP {response.status_code}"

    def app_create(self, name, generation=None):
        data = {'name': name}
        if generation:
            data['generation'] = generation
        return App.from_dict(self._request('POST', '/apps', data=data).json())

    def app_get(self, name):
        return App.from_dict(self._request('GET', f"/apps/{name}").json())

    def app_list(self):
        apps = [App.from_dict(a) for a in self._request('GET', '/apps').json()]
        return sorted(apps, key=lambda app: app.name)

    def app_cancel(self, name):
        self._request('POST', f"/apps/{name}/cancel")

    def app_update(self, name, parameters):
        self._request('PUT', f"/apps/{name}", json={'parameters': parameters})

    def app_delete(self, name):
        self._request('DELETE', f"/apps/{name}")

    def build_import(self, app, stream):
        response = self._request(
            'POST', f"/apps/{app}/builds/import", data=stream,
            headers={'Content-Type': 'application/gzip'},
        )
        return Build.from_dict(response.json())

    def build_export(self, app, build_id, stream):
        response = self._request('GET', f"/apps/{app}/builds/{build_id}.tgz", stream=True)
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    stream.write(chunk)
        except requests.RequestException as e:
            raise TransportError(f"build {build_id} export interrupted: {e}") from e
        finally:
            response.close()

    def release_get(self, app, release_id):
        return Release.from_dict(self._request('GET', f"/apps/{app}/releases/{release_id}").json())

    def release_create(self, app, env):
        return Release.from_dict(self._request('POST', f"/apps/{app}/releases", data={'env': env}).json())

    def release_promote(self, app, release_id):
        self._request('POST', f"/apps/{app}/releases/{release_id}/promote")

    def resource_list(self, app):
        return [Resource.from_dict(r) for r in self._request('GET', f"/apps/{app}/resources").json()]

    def resource_export(self, app, name):
        response = self._request('GET', f"/apps/{app}/resources/{name}/data", stream=True)
        response.raw.decode_content = True
        return response.raw

    def resource_import(self, app, name, stream):
        self._request(
            'PUT', f"/apps/{app}/resources/{name}/data", data=stream,
            headers={'Content-Type': 'application/octet-stream'},
        )
