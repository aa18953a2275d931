"""Exception types raised by the repository and pagination layers."""


class MultirepoError(Exception):
    """Base class for all library errors."""


class ConfigurationError(MultirepoError):
    """Unsupported dialect or unknown connection. Fatal, never retried."""


class FormatError(MultirepoError, ValueError):
    """Query text does not have the shape an operation requires."""
