"""
Exception taxonomy for the scene search pipeline.

Only CatalogUnavailableError is allowed to reach callers of the pipeline;
the others are caught at stage boundaries and converted into the stage's
fallback behavior.
"""


class ConfigurationError(RuntimeError):
    """A required credential or endpoint is not configured."""


class ProviderUnavailableError(RuntimeError):
    """A collaborator failed at the transport level (network, timeout, HTTP error)."""


class MalformedResponseError(ValueError):
    """A collaborator returned data that failed shape validation."""


class CatalogUnavailableError(RuntimeError):
    """Every catalog lookup made during candidate retrieval failed."""
