"""Entity-name resolution and target matching."""

from warmpath.services.resolution.entity_resolver import EntityResolver, normalize_entity_name
from warmpath.services.resolution.target_resolver import TargetResolver

__all__ = ["EntityResolver", "TargetResolver", "normalize_entity_name"]
