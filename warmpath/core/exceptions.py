"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for warmpath errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class PipelineError(AppError):
    """Base exception for import pipeline errors."""
    pass


class NormalizationError(PipelineError):
    """Raised when a raw record cannot be preprocessed or normalized."""
    pass


class EntityResolutionError(PipelineError):
    """Raised when an entity name cannot be resolved."""
    pass


class GraphConstructionError(PipelineError):
    """Raised when a single contact or connection cannot be merged into the graph."""
    pass


class GraphStoreError(AppError):
    """Raised when a graph store operation fails for one entity or query."""
    pass


class GraphStoreUnavailableError(GraphStoreError):
    """Raised when the graph store cannot be reached at all.

    Unlike ``GraphStoreError`` this aborts a whole construction batch.
    """
    pass


class PathFindingError(AppError):
    """Raised when paths to a target cannot be computed."""
    pass
