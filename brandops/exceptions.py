"""
Exception hierarchy for the brand-operations insight service.

All custom exceptions inherit from BrandOpsException so callers can
catch a single base type when they want a broad safety net.
"""


class BrandOpsException(Exception):
    """Base exception for all service errors."""


class ConfigurationError(BrandOpsException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class UpstreamFetchError(BrandOpsException):
    """Raised when the analytical data source cannot be read."""


class LLMError(BrandOpsException):
    """Raised when the LLM call fails or returns unusable output."""


class LLMTimeoutError(LLMError):
    """Raised when the LLM call exceeds its deadline."""


class InsightValidationError(BrandOpsException, ValueError):
    """Raised when an LLM insight record is malformed."""


class BadRequestError(BrandOpsException, ValueError):
    """Raised when a request parameter is missing or invalid."""


class MethodNotAllowedError(BrandOpsException):
    """Raised when an endpoint is called with an unsupported verb."""


class UnknownPageError(BrandOpsException, KeyError):
    """Raised when a requested dashboard page is not registered."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""
