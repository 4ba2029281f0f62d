"""Exceptions raised by the prompt optimizer."""


class OptimizerError(Exception):
    """Base exception for all prompt optimizer errors."""
    pass


class InputRequiredError(OptimizerError):
    """Raised when a required text input is empty."""
    pass


class MissingCredentialError(OptimizerError):
    """Raised when no API key is available for a provider."""
    pass


class UnknownModelError(OptimizerError):
    """Raised when a model identifier is not in the enumerated set."""
    pass


class VersionOutOfRangeError(OptimizerError):
    """Raised when selecting a version that does not exist."""
    pass


class StaleHistoryError(OptimizerError):
    """Raised when the stored history changed since it was read."""
    pass
