"""
Node taint evaluation.

Each taint on a node is matched against the configured replacement options:
an option with the exact key wins over "*", and among exact keys the first
declared option wins. A matched taint marks the process groups on the node as
detected; once it is older than the option's duration they are also replacing.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from membership.errors import ConfigurationError
from membership.matching import first_match
from membership.policy import WILDCARD, TaintReplacementOption
from membership.status.world import Node, Taint


@dataclass(slots=True, frozen=True)
class TaintVerdict:
    detected: bool = False
    replacing: bool = False
    # key of the taint that drove the verdict
    key: str | None = None
    duration_seconds: int | None = None


_CLEAN = TaintVerdict()


class TaintEvaluator:
    def __init__(self, options: Sequence[TaintReplacementOption]) -> None:
        for option in options:
            if WILDCARD in option.key and option.key != WILDCARD:
                raise ConfigurationError(
                    f"taint replacement key {option.key!r}: only exact keys or '*' are supported"
                )
        self._options: tuple[TaintReplacementOption, ...] = tuple(options)

    @property
    def enabled(self) -> bool:
        return bool(self._options)

    def match(self, key: str) -> TaintReplacementOption | None:
        return first_match(self._options, key, key=lambda option: option.key)

    def evaluate(self, node: Node | None, now: int, detected_since: int | None) -> TaintVerdict:
        """
        Evaluate all taints of `node`.

        :param detected_since: first observed time of an existing NodeTaintDetected
            condition; used as taint start when the orchestrator did not stamp one
        """
        if node is None or not self._options:
            return _CLEAN

        verdict = _CLEAN
        for taint in node.taints:
            option = self.match(taint.key)
            if option is None:
                continue
            replacing = self._has_expired(taint, option, now, detected_since)
            if not verdict.detected or (replacing and not verdict.replacing):
                verdict = TaintVerdict(
                    detected=True,
                    replacing=replacing,
                    key=taint.key,
                    duration_seconds=option.duration_seconds,
                )
            if verdict.replacing:
                break
        return verdict

    @staticmethod
    def _has_expired(
        taint: Taint, option: TaintReplacementOption, now: int, detected_since: int | None
    ) -> bool:
        started = taint.time_added if taint.time_added is not None else detected_since
        if started is None:
            return option.duration_seconds == 0
        return now - started >= option.duration_seconds
