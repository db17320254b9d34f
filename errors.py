class InvalidInputError(ValueError):
    """Raised at the engine boundary for malformed data or configuration."""


class UndefinedMetricError(ArithmeticError):
    """Raised when a metric is requested that is undefined for the data, e.g. R^2 of a constant target."""


class TrainingCancelledError(RuntimeError):
    """Raised when a cooperative stop request ends training before any model exists."""
