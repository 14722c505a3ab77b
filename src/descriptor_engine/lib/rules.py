"""Nature rule table — deterministic expense nature from category/subcategory.

Loads nature_rules.yaml and answers, in a fixed order:
eventual category -> fixed category/subcategory -> variable category.
Category and subcategory ids are opaque strings owned by the taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

from .logging_setup import get_logger
from .nature import ExpenseNature
from .tables import NATURE_TABLE, TableError, load_table, resolve_tables_dir, string_list

logger = get_logger(__name__)

DEFAULT_REASONS = {
    "USER": "Classificação definida pelo usuário",
    "FIXED": "Despesa fixa estrutural - ocorre independente de decisões de consumo",
    "VARIABLE": "Despesa variável - depende de decisões de consumo no mês",
    "EVENTUAL": "Despesa eventual - não recorrente",
    "UNKNOWN": "Classificação não determinada automaticamente",
    "RECURRENCE": (
        "Despesa recorrente detectada: {months} meses consecutivos com variação ≤{threshold}%"
    ),
}


@dataclass(frozen=True)
class FixedRule:
    category: str
    subcategories: frozenset[str] | None = None  # None: whole category

    def matches(self, category_id: str | None, subcategory_id: str | None) -> bool:
        if category_id != self.category:
            return False
        if self.subcategories is None:
            return True
        return bool(subcategory_id) and subcategory_id in self.subcategories


@dataclass(frozen=True)
class NatureRuleTable:
    version: Any = None
    eventual_categories: frozenset[str] = frozenset()
    fixed_rules: tuple[FixedRule, ...] = ()
    variable_categories: frozenset[str] = frozenset()
    heuristic_candidates: frozenset[str] = frozenset()
    reasons: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_REASONS))
    labels: dict[str, dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "<dict>") -> "NatureRuleTable":
        fixed_rules = []
        for entry in data.get("fixed") or []:
            if not isinstance(entry, dict) or "category" not in entry:
                raise TableError(f"{source}: fixed rule needs a 'category': {entry!r}")
            subs = entry.get("subcategories")
            fixed_rules.append(
                FixedRule(
                    category=str(entry["category"]),
                    subcategories=frozenset(str(s) for s in subs) if subs else None,
                )
            )

        reasons = dict(DEFAULT_REASONS)
        reasons.update({str(k): str(v) for k, v in (data.get("reasons") or {}).items()})

        return cls(
            version=data.get("version"),
            eventual_categories=frozenset(string_list(data, "eventual_categories", source)),
            fixed_rules=tuple(fixed_rules),
            variable_categories=frozenset(string_list(data, "variable_categories", source)),
            heuristic_candidates=frozenset(string_list(data, "heuristic_candidates", source)),
            reasons=reasons,
            labels={str(k): dict(v) for k, v in (data.get("labels") or {}).items()},
        )

    @classmethod
    def load(cls, tables_dir: str | Path | None = None) -> "NatureRuleTable":
        table = cls.from_dict(load_table(NATURE_TABLE, tables_dir), NATURE_TABLE)
        logger.debug(
            "Nature rules v%s: %d eventual, %d fixed, %d variable categories",
            table.version,
            len(table.eventual_categories),
            len(table.fixed_rules),
            len(table.variable_categories),
        )
        return table

    def is_eventual(self, category_id: str | None) -> bool:
        return category_id in self.eventual_categories

    def is_fixed(self, category_id: str | None, subcategory_id: str | None = None) -> bool:
        return any(rule.matches(category_id, subcategory_id) for rule in self.fixed_rules)

    def is_variable(self, category_id: str | None) -> bool:
        return category_id in self.variable_categories

    def nature_for(
        self, category_id: str | None, subcategory_id: str | None = None
    ) -> ExpenseNature | None:
        """Deterministic nature, or None when no rule applies."""
        if self.is_eventual(category_id):
            return ExpenseNature.EVENTUAL
        if self.is_fixed(category_id, subcategory_id):
            return ExpenseNature.FIXED
        if self.is_variable(category_id):
            return ExpenseNature.VARIABLE
        return None

    def is_heuristic_candidate(self, subcategory_id: str | None) -> bool:
        return bool(subcategory_id) and subcategory_id in self.heuristic_candidates

    def reason(self, key: str) -> str:
        return self.reasons.get(key, DEFAULT_REASONS.get(key, ""))

    def label(self, nature: ExpenseNature) -> str:
        return self.labels.get(nature.value, {}).get("label", nature.value)

    def badge(self, nature: ExpenseNature) -> str:
        return self.labels.get(nature.value, {}).get("badge", nature.value)


@lru_cache(maxsize=4)
def _cached_rule_table(tables_dir: Path | None) -> NatureRuleTable:
    return NatureRuleTable.load(tables_dir)


def get_rule_table(tables_dir: str | Path | None = None) -> NatureRuleTable:
    return _cached_rule_table(resolve_tables_dir(tables_dir))


def nature_label(nature: ExpenseNature) -> str:
    """Long pt-BR label, e.g. "Despesa Fixa"."""
    return get_rule_table().label(nature)


def nature_badge(nature: ExpenseNature) -> str:
    """Short badge text, e.g. "Fixa"."""
    return get_rule_table().badge(nature)
