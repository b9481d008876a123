"""
Entity Resolver

Best-effort name resolution with a bounded, thread-safe cache. The resolver
normalizes names for cache keying, tags common name shapes (acronyms,
initials) with a confidence, and exposes a similarity comparator used for
match/no-match decisions.
"""

import re
import threading
from collections import OrderedDict
from typing import Mapping, Optional

from pydantic import BaseModel, Field
from rapidfuzz import fuzz

from warmpath.core.config import settings
from warmpath.core.exceptions import EntityResolutionError
from warmpath.utils.canonical_key import generate_cache_key
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)

_ENTITY_SUFFIXES = re.compile(
    r"\b(?:llc|inc|ltd|lp|llp|corp|corporation|company|co|limited|group|partners|"
    r"capital|ventures|fund|management|advisors|advisory)\b\.?",
    re.IGNORECASE,
)
_PUNCTUATION = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

MIN_NORMALIZED_LENGTH = 3

# (pattern on the trimmed input, confidence); first match wins
NAME_PATTERNS: list[tuple[re.Pattern, float]] = [
    (re.compile(r"^[a-z0-9]{2,6}$", re.IGNORECASE), 0.9),
    (re.compile(r"^[a-z]\.\s*[a-z]+$", re.IGNORECASE), 0.8),
    (re.compile(r"^[a-z]+\s+[a-z]\.\s+[a-z]+$", re.IGNORECASE), 0.95),
]


class ResolutionResult(BaseModel):
    """A cached resolution."""

    resolved_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    variants: list[str] = Field(default_factory=list)
    cached: bool = False


class CacheInfo(BaseModel):
    hits: int
    misses: int
    size: int
    max_size: int


def normalize_entity_name(name: str) -> str:
    """Lower-case, strip legal/firm-type suffixes and punctuation, collapse whitespace."""
    normalized = name.lower()
    normalized = _ENTITY_SUFFIXES.sub("", normalized)
    normalized = _PUNCTUATION.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


class EntityResolver:
    """Resolves entity names. Instances own their cache; share one instance per process."""

    def __init__(
        self,
        cache_size: Optional[int] = None,
        min_similarity: Optional[float] = None,
        alias_table: Optional[Mapping[str, str]] = None,
        debug: bool = False,
    ):
        """
        Args:
            cache_size: Maximum cached resolutions before the oldest is evicted
            min_similarity: Default threshold for ``is_match``
            alias_table: Optional normalized-name -> canonical-name lookup
            debug: Log every resolution decision
        """
        self.cache_size = cache_size or settings.resolution.cache_size
        self.min_similarity = (
            min_similarity if min_similarity is not None else settings.resolution.min_similarity
        )
        if self.cache_size <= 0:
            raise EntityResolutionError(f"cache_size must be positive, got {self.cache_size}")
        if not 0.0 <= self.min_similarity <= 1.0:
            raise EntityResolutionError(f"min_similarity must be within [0, 1], got {self.min_similarity}")

        self.alias_table = {
            normalize_entity_name(alias): canonical for alias, canonical in (alias_table or {}).items()
        }
        self.debug = debug
        self._cache: "OrderedDict[str, ResolutionResult]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def resolve(self, name: str) -> str:
        """Resolved display name for ``name``."""
        return self.resolve_with_details(name).resolved_name

    def resolve_with_details(self, name: str) -> ResolutionResult:
        """Resolve ``name`` and return the full cache entry."""
        if name is None:
            raise EntityResolutionError("Cannot resolve an empty entity name")

        normalized = normalize_entity_name(name)
        cache_key = generate_cache_key(normalized)

        with self._lock:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self._hits += 1
                if self.debug:
                    LOGGER.info(
                        f"Cache hit for \"{name}\" -> \"{cached.resolved_name}\"",
                        extra={"confidence": cached.confidence},
                    )
                if name not in cached.variants:
                    cached.variants.append(name)
                return cached.model_copy(update={"cached": True}, deep=True)
            self._misses += 1

        if len(normalized) < MIN_NORMALIZED_LENGTH:
            return ResolutionResult(resolved_name=name, confidence=1.0, variants=[name])

        confidence = 1.0
        stripped = name.strip()
        for pattern, pattern_confidence in NAME_PATTERNS:
            if pattern.match(stripped):
                confidence = pattern_confidence
                break

        resolved_name = self.alias_table.get(normalized, name)
        result = ResolutionResult(resolved_name=resolved_name, confidence=confidence, variants=[name])

        with self._lock:
            if cache_key not in self._cache:
                if len(self._cache) >= self.cache_size:
                    evicted_key, _ = self._cache.popitem(last=False)
                    if self.debug:
                        LOGGER.info("Evicted oldest resolution", extra={"cache_key": evicted_key})
                self._cache[cache_key] = result

        if self.debug:
            LOGGER.info(
                f"Resolved \"{name}\" -> \"{resolved_name}\"",
                extra={"normalized": normalized, "confidence": confidence},
            )
        return result.model_copy(deep=True)

    def compare(self, name1: str, name2: str) -> float:
        """Symmetric similarity in [0, 1] between two names after normalization."""
        normalized1 = normalize_entity_name(name1 or "")
        normalized2 = normalize_entity_name(name2 or "")
        if not normalized1 and not normalized2:
            return 1.0 if (name1 or "").strip().lower() == (name2 or "").strip().lower() else 0.0
        return fuzz.ratio(normalized1, normalized2) / 100.0

    def is_match(self, name1: str, name2: str, min_similarity: Optional[float] = None) -> bool:
        threshold = self.min_similarity if min_similarity is None else min_similarity
        return self.compare(name1, name2) >= threshold

    def cache_info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(
                hits=self._hits,
                misses=self._misses,
                size=len(self._cache),
                max_size=self.cache_size,
            )

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
