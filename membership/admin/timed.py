from __future__ import annotations

import threading

from membership.admin.client import AdminClient
from membership.errors import ClusterUnreachableError
from membership.status.world import DatabaseStatus


class TimedAdminClient:
    """
    Bounds every status call of the wrapped client.

    The call runs in a daemon thread; when it does not finish within
    `timeout_sec` the cluster counts as unreachable and the thread is left
    to finish on its own.
    """

    def __init__(self, inner: AdminClient, timeout_sec: float) -> None:
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")
        self._inner = inner
        self._timeout_sec = timeout_sec

    def get_status(self) -> DatabaseStatus:
        statuses: list[DatabaseStatus] = []
        errors: list[Exception] = []

        def _call() -> None:
            try:
                statuses.append(self._inner.get_status())
            except Exception as exc:  # re-raised in the caller's thread
                errors.append(exc)

        worker = threading.Thread(target=_call, name="admin.get_status", daemon=True)
        worker.start()
        worker.join(self._timeout_sec)

        if worker.is_alive():
            raise ClusterUnreachableError(
                f"status call did not finish within {self._timeout_sec:g}s"
            )
        if errors:
            raise errors[0]
        return statuses[0]
