"""Expense nature classifier.

Priority, first hit wins:
    1. user override for category[::subcategory][::merchant]
    2. deterministic rule table (eventual -> fixed -> variable)
    3. recurrence heuristic, for candidate subcategories with history
    4. UNKNOWN
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .logging_setup import get_logger
from .nature import (
    DEFAULT_CONFIDENCE,
    RULE_CONFIDENCE,
    USER_CONFIDENCE,
    ExpenseNature,
    ExpenseNatureResult,
    NatureSource,
    coerce_nature,
)
from .recurrence import RecurrenceHeuristic, TransactionHistoryEntry
from .rules import NatureRuleTable, get_rule_table
from .tables import resolve_tables_dir

logger = get_logger(__name__)

OVERRIDE_SEPARATOR = "::"

Overrides = Mapping[str, "ExpenseNature | str"]


def build_override_key(
    category_id: str | None,
    subcategory_id: str | None = None,
    merchant_key: str | None = None,
) -> str:
    """``category[::subcategory][::merchant]``, absent parts omitted."""
    parts = [category_id or ""]
    if subcategory_id:
        parts.append(subcategory_id)
    if merchant_key:
        parts.append(merchant_key)
    return OVERRIDE_SEPARATOR.join(parts)


@dataclass
class ClassificationInput:
    category_id: str
    subcategory_id: str | None = None
    merchant_key: str | None = None
    amount: Decimal | None = None
    description: str | None = None

    @property
    def override_key(self) -> str:
        return build_override_key(self.category_id, self.subcategory_id, self.merchant_key)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassificationInput":
        amount = data.get("amount")
        return cls(
            category_id=data.get("category_id") or "",
            subcategory_id=data.get("subcategory_id"),
            merchant_key=data.get("merchant_key"),
            amount=Decimal(str(amount)) if amount is not None else None,
            description=data.get("description"),
        )

    @classmethod
    def from_json(cls, line: str) -> "ClassificationInput":
        return cls.from_dict(json.loads(line))


class ExpenseNatureClassifier:
    """Resolves the nature of an expense from overrides, rules and history."""

    def __init__(
        self,
        rules: NatureRuleTable | None = None,
        heuristic: RecurrenceHeuristic | None = None,
    ) -> None:
        self.rules = rules if rules is not None else get_rule_table()
        self.heuristic = heuristic if heuristic is not None else RecurrenceHeuristic()

    def _override(self, key: str, overrides: Overrides | None) -> ExpenseNature | None:
        if not overrides or key not in overrides:
            return None
        nature = coerce_nature(overrides[key])
        if nature is None:
            logger.warning("Ignoring override %r with unknown nature %r", key, overrides[key])
        return nature

    def classify(
        self,
        item: ClassificationInput,
        overrides: Overrides | None = None,
        history: Sequence[TransactionHistoryEntry] | None = None,
    ) -> ExpenseNatureResult:
        key = item.override_key

        override = self._override(key, overrides)
        if override is not None:
            return ExpenseNatureResult(
                nature=override,
                source=NatureSource.USER,
                confidence=USER_CONFIDENCE,
                reason=self.rules.reason("USER"),
            )

        nature = self.rules.nature_for(item.category_id, item.subcategory_id)
        if nature is not None:
            logger.debug("Rule hit for %s: %s", key, nature.value)
            return ExpenseNatureResult(
                nature=nature,
                source=NatureSource.SYSTEM_RULE,
                confidence=RULE_CONFIDENCE,
                reason=self.rules.reason(nature.value),
            )

        if history is not None and self.rules.is_heuristic_candidate(item.subcategory_id):
            inferred = self.heuristic.evaluate(
                item.category_id,
                item.subcategory_id,
                history,
                self.rules.reason("RECURRENCE"),
            )
            if inferred is not None:
                logger.debug("Recurrence promoted %s to FIXED", key)
                return inferred

        return ExpenseNatureResult(
            nature=ExpenseNature.UNKNOWN,
            source=NatureSource.SYSTEM_RULE,
            confidence=DEFAULT_CONFIDENCE,
            reason=self.rules.reason("UNKNOWN"),
        )

    def classify_batch(
        self,
        items: Iterable[ClassificationInput],
        overrides: Overrides | None = None,
        history: Sequence[TransactionHistoryEntry] | None = None,
    ) -> dict[str, ExpenseNatureResult]:
        """Classify each item independently, keyed by override key.

        Items sharing a key collapse to the last one.
        """
        if history is not None:
            history = list(history)
        return {item.override_key: self.classify(item, overrides, history) for item in items}


@lru_cache(maxsize=4)
def _cached_classifier(tables_dir: Path | None) -> ExpenseNatureClassifier:
    return ExpenseNatureClassifier(rules=get_rule_table(tables_dir))


def get_classifier(tables_dir: str | Path | None = None) -> ExpenseNatureClassifier:
    return _cached_classifier(resolve_tables_dir(tables_dir))


def classify(
    item: ClassificationInput,
    overrides: Overrides | None = None,
    history: Sequence[TransactionHistoryEntry] | None = None,
) -> ExpenseNatureResult:
    return get_classifier().classify(item, overrides, history)


def classify_batch(
    items: Iterable[ClassificationInput],
    overrides: Overrides | None = None,
    history: Sequence[TransactionHistoryEntry] | None = None,
) -> dict[str, ExpenseNatureResult]:
    return get_classifier().classify_batch(items, overrides, history)
