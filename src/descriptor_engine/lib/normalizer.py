"""Descriptor normalizer — stable matching keys from raw statement lines.

Turns a free-text bank/card descriptor into a short key made of at most five
meaningful tokens. The key is a pure function of the descriptor: same input,
same key, on every call and in every process.

Example:
    "PIX RECEBIDO JOAO SILVA 01/12/2024" -> "pix_recebido_joao_silva"
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from .logging_setup import get_logger
from .tables import NORMALIZER_TABLE, TableError, load_table, resolve_tables_dir, string_list

logger = get_logger(__name__)

MAX_TOKENS = 5
ORDERED_TOKENS = 3
MAX_KEY_LENGTH = 100
MERCHANT_NAME_WORDS = 4
MERCHANT_NAME_FALLBACK = 30

TOKEN_SPLIT = re.compile(r"[\s\-_./,;:]+")
_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_NUMERIC = re.compile(r"[0-9]+")


def strip_accents(text: str) -> str:
    """NFD-decompose and drop combining marks ("AÇÃO" -> "ACAO")."""
    return _COMBINING_MARKS.sub("", unicodedata.normalize("NFD", text))


def is_numeric(token: str) -> bool:
    return bool(_NUMERIC.fullmatch(token))


@dataclass(frozen=True)
class NormalizerTables:
    """Prefix, noise and stopword tables for one table version."""

    version: Any
    prefixes: tuple[tuple[str, str], ...]
    noise_patterns: tuple[re.Pattern[str], ...]
    stopwords: frozenset[str]

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "<dict>") -> "NormalizerTables":
        prefixes: list[tuple[str, str]] = []
        for entry in data.get("prefixes") or []:
            try:
                prefixes.append((str(entry["prefix"]).lower(), str(entry["code"]).upper()))
            except (KeyError, TypeError) as exc:
                raise TableError(f"{source}: bad prefix entry {entry!r}") from exc

        patterns: list[re.Pattern[str]] = []
        for entry in data.get("noise_patterns") or []:
            if isinstance(entry, str):
                entry = {"pattern": entry}
            flags = re.ASCII | (re.IGNORECASE if entry.get("ignore_case") else 0)
            try:
                patterns.append(re.compile(entry["pattern"], flags))
            except (KeyError, re.error) as exc:
                raise TableError(f"{source}: bad noise pattern {entry!r}") from exc

        return cls(
            version=data.get("version"),
            prefixes=tuple(prefixes),
            noise_patterns=tuple(patterns),
            stopwords=frozenset(w.lower() for w in string_list(data, "stopwords", source)),
        )

    @classmethod
    def load(cls, tables_dir: str | Path | None = None) -> "NormalizerTables":
        return cls.from_dict(load_table(NORMALIZER_TABLE, tables_dir), NORMALIZER_TABLE)


class Normalizer:
    """Builds normalized keys and compares descriptors by key."""

    def __init__(self, tables: NormalizerTables | None = None) -> None:
        self.tables = tables if tables is not None else NormalizerTables.load()

    def standardize_prefix(self, text: str) -> str:
        """Replace the first matching known prefix with its code."""
        lowered = strip_accents(text.lower())
        for prefix, code in self.tables.prefixes:
            if lowered.startswith(prefix):
                return f"{code} {lowered[len(prefix):]}"
        return lowered

    def remove_noise(self, text: str) -> str:
        for pattern in self.tables.noise_patterns:
            text = pattern.sub(" ", text)
        return text

    def tokenize(self, text: str, *, drop_stopwords: bool = True) -> list[str]:
        """Split on whitespace and ``-_./,;:`` and drop short/numeric tokens."""
        tokens = []
        for token in TOKEN_SPLIT.split(text):
            if len(token) < 2 or is_numeric(token):
                continue
            if drop_stopwords and token.lower() in self.tables.stopwords:
                continue
            tokens.append(token)
        return tokens

    def normalize(self, descriptor: object) -> str:
        """Generate the matching key for a raw descriptor. Never raises."""
        if not isinstance(descriptor, str):
            return ""
        text = descriptor.strip()
        if not text:
            return ""

        text = self.standardize_prefix(text)
        text = strip_accents(text.upper())
        text = self.remove_noise(text)

        tokens = self.tokenize(text.lower())[:MAX_TOKENS]
        # Leading tokens keep their order; the tail is sorted so word order
        # past the third token does not change the key.
        ordered = tokens[:ORDERED_TOKENS] + sorted(tokens[ORDERED_TOKENS:])
        return "_".join(ordered)[:MAX_KEY_LENGTH]

    def similar(self, a: object, b: object) -> bool:
        return keys_similar(self.normalize(a), self.normalize(b))

    def extract_merchant_name(self, descriptor: object) -> str:
        """Readable merchant name for display. Not used for matching."""
        if not isinstance(descriptor, str) or not descriptor.strip():
            return ""
        original = descriptor.strip()
        name = original

        upper = name.upper()
        for prefix, _code in self.tables.prefixes:
            if upper.startswith(prefix.upper()):
                name = name[len(prefix):].strip()
                break

        name = self.remove_noise(name)
        words = self.tokenize(name)[:MERCHANT_NAME_WORDS]
        return " ".join(words).strip() or original[:MERCHANT_NAME_FALLBACK]


def keys_similar(key_a: str, key_b: str) -> bool:
    """Compare two normalized keys.

    Equal keys match. Otherwise two shared tokens are required, or one when
    either side is a single-token key. Tokens are compared as sets, so the
    result does not depend on argument order.
    """
    if not key_a or not key_b:
        return False
    if key_a == key_b:
        return True
    tokens_a = set(key_a.split("_"))
    tokens_b = set(key_b.split("_"))
    shared = len(tokens_a & tokens_b)
    return shared >= 2 or (shared >= 1 and min(len(tokens_a), len(tokens_b)) == 1)


@lru_cache(maxsize=4)
def _cached_normalizer(tables_dir: Path | None) -> Normalizer:
    return Normalizer(NormalizerTables.load(tables_dir))


def get_normalizer(tables_dir: str | Path | None = None) -> Normalizer:
    """Shared normalizer per resolved table directory (argument or environment)."""
    return _cached_normalizer(resolve_tables_dir(tables_dir))


def normalize(descriptor: object) -> str:
    return get_normalizer().normalize(descriptor)


def similar(a: object, b: object) -> bool:
    return get_normalizer().similar(a, b)


def extract_merchant_name(descriptor: object) -> str:
    return get_normalizer().extract_merchant_name(descriptor)
