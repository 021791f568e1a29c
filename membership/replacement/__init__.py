"""
Replacement decisions: which failed process groups to mark, and whether it is safe.
"""

from __future__ import annotations

from .safety import SafetyGate
from .selector import REPLACEMENT_CONDITIONS, ReplacementSelector, Selection, grace_period


__all__ = [
    "REPLACEMENT_CONDITIONS",
    "ReplacementSelector",
    "SafetyGate",
    "Selection",
    "grace_period",
]
