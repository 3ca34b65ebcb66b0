#!/usr/bin/env python3
"""
Status polling for applications undergoing remote operations.

The rack rejects overlapping mutations on a transitioning app, so every
mutating stage waits here for a stable status before the next one runs.
"""

import time

from ..controlplane.models import TRANSITIONAL_STATUSES
from ..errors import NotFoundError, PollTimeoutError

MIN_POLL_INTERVAL = 0.1
DELETED_STATUS = 'deleted'


class SystemClock:
    """Wall clock used outside tests."""

    def monotonic(self):
        return time.monotonic()

    def sleep(self, seconds):
        time.sleep(seconds)


class StatusPoller:
    """Blocks until an application leaves its transitional status."""

    def __init__(self, control_plane, interval=2, timeout=1800, clock=None):
        """
        Initialize poller.

        Args:
            control_plane: ControlPlane used for app lookups
            interval: Seconds between polls (clamped to MIN_POLL_INTERVAL)
            timeout: Default deadline in seconds for a single wait
            clock: Object with monotonic() and sleep() (SystemClock if None)
        """
        self.control_plane = control_plane
        self.interval = max(float(interval), MIN_POLL_INTERVAL)
        self.timeout = timeout
        self.clock = clock if clock else SystemClock()

    @classmethod
    def from_config(cls, control_plane, config, clock=None):
        polling = config.get('polling', {})
        return cls(
            control_plane,
            interval=polling.get('interval', 2),
            timeout=polling.get('timeout', 1800),
            clock=clock,
        )

    def await_ready(self, app, timeout=None, deleting=False):
        """
        Poll app until its status is terminal and return that status.

        An app that disappears after having been seen as deleting (or when
        deleting=True, i.e. the caller just issued the delete) is terminal and
        reported as 'deleted'. Otherwise a missing app raises NotFoundError.
        Remote errors propagate unchanged; exceeding the deadline raises
        PollTimeoutError.
        """
        timeout = self.timeout if timeout is None else timeout
        deadline = self.clock.monotonic() + timeout
        seen_deleting = deleting
        last_status = None

        while True:
            try:
                status = self.control_plane.app_get(app).status
            except NotFoundError:
                if seen_deleting:
                    return DELETED_STATUS
                raise

            if status == 'deleting':
                seen_deleting = True
            if status not in TRANSITIONAL_STATUSES:
                return status

            last_status = status
            now = self.clock.monotonic()
            if now >= deadline:
                raise PollTimeoutError(app, last_status, timeout)
            self.clock.sleep(min(self.interval, deadline - now))
