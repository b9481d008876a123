"""Stable identifiers for graph nodes, relationships and resolution cache entries.

Node ids must be identical across import batches so that repeated imports of
the same person or firm merge onto one node instead of creating duplicates.
"""

import hashlib
import re
from typing import Optional

_SLUG_SEPARATORS = re.compile(r"[\s\-/]+")


def slugify_entity_id(text: str, prefix: Optional[str] = None) -> str:
    """Normalize text for use as a stable entity identifier (slug).

    Args:
        text: Text to normalize (e.g., "Acme Capital")
        prefix: Optional prefix for the ID (e.g., "firm")

    Returns:
        str: Slugified identifier (e.g., "firm_acme_capital")
    """
    if not text:
        return ""

    normalized = _SLUG_SEPARATORS.sub("_", text.strip().lower())
    normalized = "".join(c if c.isalnum() or c == "_" else "_" for c in normalized)

    while "__" in normalized:
        normalized = normalized.replace("__", "_")

    normalized = normalized.strip("_")
    return f"{prefix}_{normalized}" if prefix else normalized


def url_slug(text: str) -> str:
    """URL-safe slug (``acme-capital-llc``) used for ``firm_slug``."""
    return slugify_entity_id(text).replace("_", "-")


def node_id_for(label: str, name: str) -> str:
    """Deterministic node id: ``<label>_<slug(name)>``."""
    return slugify_entity_id(name, label.lower())


def relationship_id_for(from_id: str, to_id: str, rel_type: str) -> str:
    """Deterministic relationship id: ``<from>_<to>_<TYPE>``."""
    return f"{from_id}_{to_id}_{rel_type.upper()}"


def generate_cache_key(normalized_value: str) -> str:
    """MD5 hex digest of an already-normalized name.

    Only used as an in-process lookup key, never as a security primitive.
    """
    return hashlib.md5(normalized_value.encode("utf-8")).hexdigest()
