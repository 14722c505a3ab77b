"""Recurrence heuristic — promote a subcategory to FIXED from its history.

A category/subcategory pair that shows up in at least three months with
monthly totals within 20% of their mean is treated as a fixed expense.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from .logging_setup import get_logger
from .nature import HEURISTIC_CONFIDENCE, ExpenseNature, ExpenseNatureResult, NatureSource

logger = get_logger(__name__)

RECURRENCE_REASON = (
    "Despesa recorrente detectada: {months} meses consecutivos com variação ≤{threshold}%"
)


@dataclass
class TransactionHistoryEntry:
    """A past transaction, read-only evidence owned by the caller's storage."""

    category_id: str
    amount: Decimal
    date: str | date  # ISO-8601 date string or date/datetime
    subcategory_id: str | None = None
    merchant_key: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            self.amount = Decimal(str(self.amount))

    @property
    def month_key(self) -> str:
        """YYYY-MM of the transaction date."""
        if isinstance(self.date, (date, datetime)):
            return self.date.strftime("%Y-%m")
        return str(self.date)[:7]

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "merchant_key": self.merchant_key,
            "amount": str(self.amount),
            "date": self.date.isoformat() if isinstance(self.date, date) else self.date,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionHistoryEntry":
        return cls(
            category_id=data["category_id"],
            subcategory_id=data.get("subcategory_id"),
            merchant_key=data.get("merchant_key"),
            amount=Decimal(str(data["amount"])),
            date=data["date"],
        )

    @classmethod
    def from_json(cls, line: str) -> "TransactionHistoryEntry":
        return cls.from_dict(json.loads(line))


def _month_index(month_key: str) -> int | None:
    try:
        year, month = month_key.split("-")
        return int(year) * 12 + int(month) - 1
    except ValueError:
        return None


def longest_consecutive_run(months: Iterable[str]) -> int:
    """Length of the longest run of back-to-back calendar months."""
    indexes = sorted({i for i in (_month_index(m) for m in months) if i is not None})
    best = run = 0
    previous = None
    for index in indexes:
        run = run + 1 if previous is not None and index == previous + 1 else 1
        best = max(best, run)
        previous = index
    return best


@dataclass(frozen=True)
class RecurrenceHeuristic:
    """Thresholds for the recurrence promotion.

    ``require_consecutive`` off means "at least ``min_months`` distinct
    months", not a contiguous run.
    """

    min_occurrences: int = 3
    min_months: int = 3
    max_variation: Decimal = Decimal("0.20")
    require_consecutive: bool = False

    @staticmethod
    def matching_entries(
        category_id: str,
        subcategory_id: str,
        history: Iterable[TransactionHistoryEntry],
    ) -> list[TransactionHistoryEntry]:
        """Entries for the pair; NaN and infinite amounts are skipped."""
        return [
            e
            for e in history
            if e.category_id == category_id
            and e.subcategory_id == subcategory_id
            and e.amount.is_finite()
        ]

    def monthly_totals(
        self,
        category_id: str,
        subcategory_id: str,
        history: Iterable[TransactionHistoryEntry],
    ) -> dict[str, Decimal]:
        """Sum amounts per YYYY-MM for the matching pair, in month order."""
        totals: dict[str, Decimal] = {}
        for entry in self.matching_entries(category_id, subcategory_id, history):
            totals[entry.month_key] = totals.get(entry.month_key, Decimal(0)) + entry.amount
        return dict(sorted(totals.items()))

    def evaluate(
        self,
        category_id: str,
        subcategory_id: str,
        history: Iterable[TransactionHistoryEntry],
        reason_template: str = RECURRENCE_REASON,
    ) -> ExpenseNatureResult | None:
        """FIXED inference when the history is recurrent and stable, else None."""
        matching = self.matching_entries(category_id, subcategory_id, history)
        if len(matching) < self.min_occurrences:
            return None

        totals = self.monthly_totals(category_id, subcategory_id, matching)
        if len(totals) < self.min_months:
            return None
        if self.require_consecutive and longest_consecutive_run(totals) < self.min_months:
            return None

        amounts = list(totals.values())
        mean = sum(amounts, Decimal(0)) / len(amounts)
        if not mean.is_finite() or mean <= 0:
            return None
        variation = max(abs(amount - mean) / mean for amount in amounts)
        logger.debug(
            "Recurrence %s/%s: %d months, mean %s, max variation %.3f",
            category_id,
            subcategory_id,
            len(totals),
            mean,
            variation,
        )
        if variation > self.max_variation:
            return None

        return ExpenseNatureResult(
            nature=ExpenseNature.FIXED,
            source=NatureSource.AI_INFERENCE,
            confidence=HEURISTIC_CONFIDENCE,
            reason=reason_template.format(
                months=len(totals),
                threshold=int(self.max_variation * 100),
            ),
        )
