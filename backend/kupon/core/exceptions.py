"""Custom exception classes for the scraper pipeline.

Each error is recovered at the narrowest scope that can make a fallback
decision: strategy -> chain -> endpoint -> platform -> cycle.
"""

from typing import Dict, Optional


class KuponException(Exception):
    """Base exception for all Kupon errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(KuponException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class FetchFailure(KuponException):
    """Raised by a single fetch strategy; the chain moves on to the next tier."""

    def __init__(self, strategy: str, target: str, message: str):
        self.strategy = strategy
        self.target = target
        super().__init__(f"{strategy} failed for {target}: {message}")


class ChainExhausted(KuponException):
    """Raised when every strategy in the fetch chain failed for one endpoint."""

    def __init__(self, target: str, failures: Optional[Dict[str, str]] = None):
        self.target = target
        self.failures = failures or {}
        tried = ", ".join(self.failures) or "none"
        super().__init__(f"All fetch strategies failed for {target} (tried: {tried})")


class ScrapeTimeout(KuponException):
    """Raised when a platform run exceeds its overall time bound."""

    def __init__(self, platform: str, timeout: float):
        self.platform = platform
        self.timeout = timeout
        super().__init__(f"Scrape of {platform} timed out after {timeout:g}s")


class NormalizationReject(KuponException):
    """Raised inside the normalizer for an item that cannot become a coupon."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Item rejected: {reason}")


class PersistenceFailure(KuponException):
    """Raised when a batch chunk cannot be written."""


class ConfigurationError(KuponException):
    """Raised for missing platform/merchant references or selector config."""
