from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias


REMOVALS_UPDATED = "Removals have been updated in the cluster status"


@dataclass(slots=True, frozen=True)
class Requeue:
    """The reconcile pass changed state; the outer loop should run again."""

    message: str

    requeue: Literal[True] = field(default=True, init=False)


# None: nothing changed, wait for the next watch event or interval
ReconcileResult: TypeAlias = Requeue | None


__all__ = ["REMOVALS_UPDATED", "ReconcileResult", "Requeue"]
