"""Custom exception hierarchy for chart-config state and file errors."""

class ChartConfigError(Exception):
    """Base exception for chart-config domain errors."""
    pass


class InvalidMutationError(ChartConfigError, ValueError):
    """Raised when a mutation or payload breaks the caller contract."""
    pass


class UnknownActionError(InvalidMutationError):
    """Raised when a remediation action kind is not registered."""
    pass


class ConfigFileError(ChartConfigError):
    """Raised for unreadable or malformed snapshot/catalog YAML."""
    pass


class ConfigNotReadyError(ChartConfigError):
    """Raised when saving while one or more steps need attention."""
    pass


class ParquetUnavailableError(ChartConfigError):
    """Raised when Parquet functionality requires unavailable dependencies."""
    pass
