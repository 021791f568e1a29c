"""
Admin client boundary: real implementations live outside this package.
"""

from __future__ import annotations

from .client import AdminClient
from .mock import MockAdminClient
from .timed import TimedAdminClient


__all__ = ["AdminClient", "MockAdminClient", "TimedAdminClient"]
