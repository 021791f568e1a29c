"""
Condition tracking: turns the observed world into timestamped conditions.
"""

from __future__ import annotations

from .taints import TaintEvaluator, TaintVerdict
from .validate import ConditionTracker


__all__ = [
    "ConditionTracker",
    "TaintEvaluator",
    "TaintVerdict",
]
