"""Engine-specific exceptions."""


class SearchEngineError(Exception):
    """Base exception for search engine errors."""


class EngineConnectionError(SearchEngineError):
    """Raised when the engine cannot reach its backend."""


class EngineNotStartedError(SearchEngineError):
    """Raised when an operation needs a started engine."""


class BulkUpdateError(SearchEngineError):
    """Raised when a bulk patch was not fully applied."""


class EngineConfigurationError(SearchEngineError):
    """Raised when the engine configuration is invalid."""
