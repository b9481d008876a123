"""Path discovery and scoring."""

from warmpath.services.query.path_finder import PathFinder, normalize_scores, rank_paths
from warmpath.services.query.path_scorer import PathScorer

__all__ = ["PathFinder", "PathScorer", "normalize_scores", "rank_paths"]
