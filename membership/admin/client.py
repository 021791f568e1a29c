from __future__ import annotations

from typing import Protocol

from membership.status.world import DatabaseStatus


class AdminClient(Protocol):
    """
    Capability the core needs from the database control plane.

    Implementations bound their own call time and raise ClusterUnreachableError
    when the status cannot be fetched.
    """

    def get_status(self) -> DatabaseStatus: ...
