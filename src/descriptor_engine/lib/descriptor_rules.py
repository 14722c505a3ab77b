"""Bank descriptor rules — category hints from well-known statement wording.

Loads descriptor_rules.yaml: an ordered list of rules, each with substring
patterns and/or regexes and the category it suggests. Matching runs on the
accent-stripped upper-case descriptor. Every rule is tried; the highest
confidence wins and the earlier rule wins a tie.

Example:
    "TARIFA IOF INTERNACIONAL" -> despesas-financeiras-iof (0.95)
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from .logging_setup import get_logger
from .normalizer import strip_accents
from .tables import DESCRIPTOR_TABLE, TableError, load_table, resolve_tables_dir, string_list

logger = get_logger(__name__)

MIN_DESCRIPTION_LENGTH = 3
CLASSIFICATIONS = ("expense", "income", "transfer")


@dataclass(frozen=True)
class DescriptorRule:
    category_id: str
    confidence: float
    patterns: tuple[str, ...] = ()
    regexes: tuple[re.Pattern, ...] = ()
    subcategory_id: str | None = None
    classification: str = "expense"
    description: str = ""

    def matches(self, text: str) -> bool:
        """``text`` must already be accent-stripped and upper-case."""
        return any(p in text for p in self.patterns) or any(r.search(text) for r in self.regexes)


@dataclass(frozen=True)
class DescriptorMatch:
    category_id: str
    subcategory_id: str | None
    classification: str
    confidence: float
    description: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


def _rule_from_dict(entry: Any, source: str) -> DescriptorRule:
    if not isinstance(entry, dict) or not entry.get("category"):
        raise TableError(f"{source}: descriptor rule needs a 'category': {entry!r}")
    patterns = string_list(entry, "patterns", source)
    regex_sources = string_list(entry, "regexes", source)
    if not patterns and not regex_sources:
        raise TableError(f"{source}: rule for {entry['category']!r} has no patterns")
    try:
        regexes = tuple(re.compile(r, re.ASCII) for r in regex_sources)
    except re.error as e:
        raise TableError(f"{source}: bad regex in rule for {entry['category']!r}: {e}") from e
    classification = str(entry.get("classification") or "expense")
    if classification not in CLASSIFICATIONS:
        raise TableError(f"{source}: unknown classification {classification!r}")
    try:
        confidence = float(entry.get("confidence", 0.5))
    except (TypeError, ValueError) as e:
        raise TableError(f"{source}: bad confidence in rule for {entry['category']!r}") from e
    return DescriptorRule(
        category_id=str(entry["category"]),
        subcategory_id=str(entry["subcategory"]) if entry.get("subcategory") else None,
        confidence=confidence,
        patterns=tuple(strip_accents(p.upper()) for p in patterns),
        regexes=regexes,
        classification=classification,
        description=str(entry.get("description") or ""),
    )


@dataclass(frozen=True)
class DescriptorRuleTable:
    version: Any = None
    rules: tuple[DescriptorRule, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "<dict>") -> "DescriptorRuleTable":
        entries = data.get("rules") or []
        if not isinstance(entries, list):
            raise TableError(f"{source}: 'rules' must be a list")
        return cls(
            version=data.get("version"),
            rules=tuple(_rule_from_dict(entry, source) for entry in entries),
        )

    @classmethod
    def load(cls, tables_dir: str | Path | None = None) -> "DescriptorRuleTable":
        table = cls.from_dict(load_table(DESCRIPTOR_TABLE, tables_dir), DESCRIPTOR_TABLE)
        logger.debug("Descriptor rules v%s: %d rules", table.version, len(table.rules))
        return table

    def match(self, description: object) -> DescriptorMatch | None:
        """Best rule for a raw descriptor, or None. Never raises."""
        if not isinstance(description, str) or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
            return None
        text = strip_accents(description.upper())
        best: DescriptorRule | None = None
        for rule in self.rules:
            if (best is None or rule.confidence > best.confidence) and rule.matches(text):
                best = rule
        if best is None:
            return None
        logger.debug("Descriptor %r matched rule %r", description, best.description)
        return DescriptorMatch(
            category_id=best.category_id,
            subcategory_id=best.subcategory_id,
            classification=best.classification,
            confidence=best.confidence,
            description=best.description,
        )


@lru_cache(maxsize=4)
def _cached_descriptor_rules(tables_dir: Path | None) -> DescriptorRuleTable:
    return DescriptorRuleTable.load(tables_dir)


def get_descriptor_rules(tables_dir: str | Path | None = None) -> DescriptorRuleTable:
    return _cached_descriptor_rules(resolve_tables_dir(tables_dir))


def match_descriptor(description: object) -> DescriptorMatch | None:
    return get_descriptor_rules().match(description)
