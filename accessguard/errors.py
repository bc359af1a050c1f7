"""
Exception types for accessguard.

Provider errors are raised inside a provider and converted to a plain
"query failed" result at the provider boundary; they never reach the
registry or the access decision engine.
"""


class AccessGuardError(Exception):
    """Base class for all accessguard errors."""


class ProviderError(AccessGuardError):
    """A reputation provider could not produce a record."""

    def __init__(self, message: str, provider: str = ''):
        super().__init__(message)
        self.provider = provider


class TransportError(ProviderError):
    """Network failure or timeout while reaching a provider."""


class MalformedResponseError(ProviderError):
    """Provider answered with non-JSON content or missing fields."""


class ProviderRejection(ProviderError):
    """Provider explicitly refused the query (bad key, quota exceeded, ...)."""


class ConfigurationError(ProviderError):
    """A required API key is missing for the selected provider."""


class IndeterminateIpError(AccessGuardError):
    """No valid client IP could be found in the request."""
