"""Exception hierarchy for the deep research core."""


class DeepResearchError(Exception):
    """Base exception for deep research errors."""

    pass


class UpstreamModelError(DeepResearchError):
    """Raised when the generation backend fails or returns content violating the schema.

    Never retried inside the core; it propagates to the caller as a request failure.
    """

    def __init__(self, message: str, *, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class InvalidResearchRequest(DeepResearchError):
    """Raised for malformed research input, before any model call is made."""

    pass


class ConfigurationError(DeepResearchError):
    """Raised when environment configuration cannot be parsed."""

    pass
