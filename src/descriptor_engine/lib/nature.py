"""Expense nature value objects shared by the rules, heuristic and classifier."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class ExpenseNature(str, Enum):
    FIXED = "FIXED"  # structural, recurs regardless of consumption choices
    VARIABLE = "VARIABLE"  # depends on the month's consumption decisions
    EVENTUAL = "EVENTUAL"  # non-recurring
    UNKNOWN = "UNKNOWN"


class NatureSource(str, Enum):
    USER = "USER"
    SYSTEM_RULE = "SYSTEM_RULE"
    AI_INFERENCE = "AI_INFERENCE"


# Fixed calibration points, one per evidence source.
USER_CONFIDENCE = 1.0
RULE_CONFIDENCE = 0.95
HEURISTIC_CONFIDENCE = 0.75
DEFAULT_CONFIDENCE = 0.3


@dataclass(frozen=True)
class ExpenseNatureResult:
    """Classification outcome. ``reason`` is display text, not a code."""

    nature: ExpenseNature
    source: NatureSource
    confidence: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["nature"] = self.nature.value
        data["source"] = self.source.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExpenseNatureResult":
        return cls(
            nature=ExpenseNature(data["nature"]),
            source=NatureSource(data["source"]),
            confidence=float(data["confidence"]),
            reason=str(data.get("reason", "")),
        )

    @classmethod
    def from_json(cls, line: str) -> "ExpenseNatureResult":
        return cls.from_dict(json.loads(line))


def coerce_nature(value: object) -> ExpenseNature | None:
    """Accept an ExpenseNature or its name (any case). None if unrecognised."""
    if isinstance(value, ExpenseNature):
        return value
    if isinstance(value, str):
        try:
            return ExpenseNature(value.strip().upper())
        except ValueError:
            return None
    return None
