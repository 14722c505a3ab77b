"""Learned keyword -> category rules from import review corrections.

When a user accepts a category different from the suggested one, the
normalized description becomes a keyword mapped to that category for the
family scope. Storage belongs to the caller; it only has to honour the
``LearnedRuleStore`` upsert contract (last write wins on the category, the
counter is incremented atomically).
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Iterable, Protocol

from .descriptor_rules import MIN_DESCRIPTION_LENGTH, DescriptorRuleTable, get_descriptor_rules
from .logging_setup import get_logger
from .normalizer import Normalizer, get_normalizer

logger = get_logger(__name__)

LEARNED_CONFIDENCE = 0.85


@dataclass(frozen=True)
class LearnedCategoryRule:
    scope: str
    normalized_keyword: str
    category_id: str
    subcategory_id: str | None
    match_count: int

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, line: str) -> "LearnedCategoryRule":
        return cls(**json.loads(line))


class LearnedRuleStore(Protocol):
    def upsert(
        self,
        scope: str,
        keyword: str,
        category_id: str,
        subcategory_id: str | None = None,
    ) -> LearnedCategoryRule: ...

    def get(self, scope: str, keyword: str) -> LearnedCategoryRule | None: ...


class InMemoryRuleStore:
    """Process-local store honouring the upsert contract."""

    def __init__(self) -> None:
        self._rules: dict[tuple[str, str], LearnedCategoryRule] = {}
        self._lock = threading.Lock()

    def upsert(
        self,
        scope: str,
        keyword: str,
        category_id: str,
        subcategory_id: str | None = None,
    ) -> LearnedCategoryRule:
        with self._lock:
            existing = self._rules.get((scope, keyword))
            rule = LearnedCategoryRule(
                scope=scope,
                normalized_keyword=keyword,
                category_id=category_id,
                subcategory_id=subcategory_id,
                match_count=existing.match_count + 1 if existing else 1,
            )
            self._rules[(scope, keyword)] = rule
        return rule

    def get(self, scope: str, keyword: str) -> LearnedCategoryRule | None:
        return self._rules.get((scope, keyword))

    def rules(self, scope: str | None = None) -> list[LearnedCategoryRule]:
        return [r for r in self._rules.values() if scope is None or r.scope == scope]

    def count(self) -> int:
        return len(self._rules)


@dataclass
class ReviewedTransaction:
    """One line of an import review: what was suggested and what was kept."""

    description: str
    category_id: str
    subcategory_id: str | None = None
    suggested_category_id: str | None = None
    suggested_subcategory_id: str | None = None
    confidence: float = 0.0

    @property
    def corrected(self) -> bool:
        return (self.category_id, self.subcategory_id or None) != (
            self.suggested_category_id,
            self.suggested_subcategory_id or None,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewedTransaction":
        return cls(
            description=data.get("description") or "",
            category_id=data["category_id"],
            subcategory_id=data.get("subcategory_id"),
            suggested_category_id=data.get("suggested_category_id"),
            suggested_subcategory_id=data.get("suggested_subcategory_id"),
            confidence=float(data.get("confidence") or 0.0),
        )


def learnable_keywords(
    items: Iterable[ReviewedTransaction],
    reinforce_confidence: float | None = None,
    normalizer: Normalizer | None = None,
) -> dict[str, tuple[str, str | None]]:
    """Keywords to learn from a reviewed batch.

    Corrected items always qualify; with ``reinforce_confidence`` set,
    accepted suggestions at or above that confidence qualify too. Within
    one batch the first item for a keyword wins.
    """
    normalizer = normalizer or get_normalizer()
    learned: dict[str, tuple[str, str | None]] = {}
    for item in items:
        if not item.category_id:
            continue
        reinforced = reinforce_confidence is not None and item.confidence >= reinforce_confidence
        if not (item.corrected or reinforced):
            continue
        keyword = normalizer.normalize(item.description)
        if keyword and keyword not in learned:
            learned[keyword] = (item.category_id, item.subcategory_id)
    return learned


def record_review(
    store: LearnedRuleStore,
    scope: str,
    items: Iterable[ReviewedTransaction],
    reinforce_confidence: float | None = None,
    normalizer: Normalizer | None = None,
) -> list[LearnedCategoryRule]:
    """Upsert every learnable keyword of a reviewed batch into the store."""
    keywords = learnable_keywords(items, reinforce_confidence, normalizer)
    rules = [
        store.upsert(scope, keyword, category_id, subcategory_id)
        for keyword, (category_id, subcategory_id) in keywords.items()
    ]
    logger.info("Learned %d keyword rule(s) for scope %s", len(rules), scope)
    return rules


class SuggestionSource(str, Enum):
    LEARNED = "learned"
    DESCRIPTOR = "descriptor"


@dataclass(frozen=True)
class CategorySuggestion:
    category_id: str
    subcategory_id: str | None
    confidence: float
    source: SuggestionSource
    match_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def suggest_category(
    store: LearnedRuleStore,
    scope: str,
    description: str,
    normalizer: Normalizer | None = None,
    descriptor_rules: DescriptorRuleTable | None = None,
) -> CategorySuggestion | None:
    """Category for a description: learned rule, then descriptor rule, else None."""
    if not isinstance(description, str) or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        return None
    keyword = (normalizer or get_normalizer()).normalize(description)
    rule = store.get(scope, keyword) if keyword else None
    if rule is not None:
        return CategorySuggestion(
            category_id=rule.category_id,
            subcategory_id=rule.subcategory_id,
            confidence=LEARNED_CONFIDENCE,
            source=SuggestionSource.LEARNED,
            match_count=rule.match_count,
        )

    if descriptor_rules is None:
        descriptor_rules = get_descriptor_rules()
    match = descriptor_rules.match(description)
    if match is None:
        return None
    return CategorySuggestion(
        category_id=match.category_id,
        subcategory_id=match.subcategory_id,
        confidence=match.confidence,
        source=SuggestionSource.DESCRIPTOR,
    )
