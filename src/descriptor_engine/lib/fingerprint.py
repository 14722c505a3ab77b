"""Merchant fingerprinting for category learning.

Two fingerprint kinds:
- strong ("F:NETFLIX"): the descriptor names a merchant from the dictionary
- weak ("W:<key>"): derived from the normalized key, covers everything else

Gateway prefixes (PAG*, MP*, ...) and location noise (state codes, CEP,
capital city names) are removed before either is computed.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from .logging_setup import get_logger
from .normalizer import Normalizer, get_normalizer, is_numeric, strip_accents
from .tables import MERCHANT_TABLE, TableError, load_table, resolve_tables_dir, string_list

logger = get_logger(__name__)

STRONG_PREFIX = "F:"
WEAK_PREFIX = "W:"
WEAK_TOKEN_COUNT = 3

_LOOKUP_SPLIT = re.compile(r"[\s\-_./,;:*]+")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class Fingerprint:
    strong: str | None
    weak: str | None
    normalized_descriptor: str
    merchant_canon: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Fingerprint":
        return cls(
            strong=data.get("strong"),
            weak=data.get("weak"),
            normalized_descriptor=data.get("normalized_descriptor") or "",
            merchant_canon=data.get("merchant_canon"),
        )

    @classmethod
    def from_json(cls, line: str) -> "Fingerprint":
        return cls.from_dict(json.loads(line))


@dataclass(frozen=True)
class MatchPolicy:
    """How a token may match a dictionary merchant without being equal to it.

    Containment either way counts when the shorter string has at least
    ``min_overlap_length`` chars, or the merchant itself is a short brand
    code of at most ``short_merchant_max_length`` chars.
    """

    allow_substring: bool = True
    min_overlap_length: int = 4
    short_merchant_max_length: int = 5

    def accepts(self, token: str, merchant: str) -> bool:
        if not self.allow_substring:
            return False
        if merchant not in token and token not in merchant:
            return False
        shorter = min(len(token), len(merchant))
        return (
            shorter >= self.min_overlap_length
            or len(merchant) <= self.short_merchant_max_length
        )


@dataclass(frozen=True)
class MerchantTables:
    version: Any
    gateway_patterns: tuple[re.Pattern[str], ...]
    location_patterns: tuple[re.Pattern[str], ...]
    merchants: tuple[str, ...]  # dictionary order is match order

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "<dict>") -> "MerchantTables":
        gateways = tuple(
            re.compile(rf"^{re.escape(prefix.upper())}\b\*?\s*", re.IGNORECASE)
            for prefix in string_list(data, "gateway_prefixes", source)
        )
        try:
            locations = tuple(
                re.compile(pattern, re.IGNORECASE)
                for pattern in string_list(data, "location_patterns", source)
            )
        except re.error as exc:
            raise TableError(f"{source}: bad location pattern: {exc}") from exc

        raw = data.get("merchants") or []
        if isinstance(raw, dict):
            # grouped by sector; sectors are only for humans
            raw = [m for group in raw.values() for m in (group or [])]
        if not isinstance(raw, list):
            raise TableError(f"{source}: 'merchants' must be a list or a mapping of lists")
        merchants = tuple(dict.fromkeys(strip_accents(str(m).upper()) for m in raw))

        return cls(
            version=data.get("version"),
            gateway_patterns=gateways,
            location_patterns=locations,
            merchants=merchants,
        )

    @classmethod
    def load(cls, tables_dir: str | Path | None = None) -> "MerchantTables":
        tables = cls.from_dict(load_table(MERCHANT_TABLE, tables_dir), MERCHANT_TABLE)
        logger.debug("Merchant dictionary v%s: %d entries", tables.version, len(tables.merchants))
        return tables


class FingerprintGenerator:
    def __init__(
        self,
        tables: MerchantTables | None = None,
        normalizer: Normalizer | None = None,
        policy: MatchPolicy | None = None,
    ) -> None:
        self.tables = tables if tables is not None else MerchantTables.load()
        self.normalizer = normalizer if normalizer is not None else get_normalizer()
        self.policy = policy if policy is not None else MatchPolicy()
        self._merchant_set = frozenset(self.tables.merchants)

    def strip_gateway(self, descriptor: str) -> str:
        result = descriptor.upper()
        for pattern in self.tables.gateway_patterns:
            result = pattern.sub("", result)
        return result.strip()

    def strip_location(self, descriptor: str) -> str:
        result = descriptor
        for pattern in self.tables.location_patterns:
            result = pattern.sub(" ", result)
        return _WHITESPACE.sub(" ", result).strip()

    def lookup_tokens(self, descriptor: str) -> list[str]:
        return [t for t in _LOOKUP_SPLIT.split(descriptor) if len(t) >= 2 and not is_numeric(t)]

    def match_merchant(self, tokens: list[str]) -> str | None:
        """First dictionary merchant matched by the tokens, in token order."""
        for token in tokens:
            upper = strip_accents(token.upper())
            if upper in self._merchant_set:
                return upper
            for merchant in self.tables.merchants:
                if self.policy.accepts(upper, merchant):
                    return merchant
        return None

    def fingerprint(self, raw_descriptor: object) -> Fingerprint:
        """Strong/weak fingerprints for a raw descriptor. Never raises."""
        if not isinstance(raw_descriptor, str) or not raw_descriptor.strip():
            return Fingerprint(None, None, "", None)

        cleaned = self.strip_gateway(raw_descriptor.strip())
        cleaned = self.strip_location(cleaned)

        key = self.normalizer.normalize(cleaned)
        tokens = self.lookup_tokens(cleaned)
        merchant = self.match_merchant(tokens)

        weak = f"{WEAK_PREFIX}{key}" if key else _weak_from_tokens(tokens)
        return Fingerprint(
            strong=f"{STRONG_PREFIX}{merchant}" if merchant else None,
            weak=weak or None,
            normalized_descriptor=key or cleaned,
            merchant_canon=merchant,
        )


def _weak_from_tokens(tokens: list[str]) -> str:
    meaningful = sorted([t for t in tokens if len(t) >= 3 and not is_numeric(t)][:WEAK_TOKEN_COUNT])
    if not meaningful:
        return ""
    return WEAK_PREFIX + "_".join(meaningful).upper()


@lru_cache(maxsize=4)
def _cached_generator(tables_dir: Path | None) -> FingerprintGenerator:
    return FingerprintGenerator(MerchantTables.load(tables_dir), get_normalizer(tables_dir))


def get_generator(tables_dir: str | Path | None = None) -> FingerprintGenerator:
    return _cached_generator(resolve_tables_dir(tables_dir))


def fingerprint(raw_descriptor: object) -> Fingerprint:
    return get_generator().fingerprint(raw_descriptor)


def has_strong_fingerprint(raw_descriptor: object) -> bool:
    return fingerprint(raw_descriptor).strong is not None


def extract_merchant_canon(raw_descriptor: object) -> str | None:
    return fingerprint(raw_descriptor).merchant_canon
