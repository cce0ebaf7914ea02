"""
Custom exceptions for DealPulse.

Provides a hierarchy of exceptions so callers can tell recoverable
source/generation failures apart from per-entity and persistence failures.
"""

from typing import Any, Dict, Optional


class DealPulseError(Exception):
    """Base exception for all DealPulse errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(DealPulseError):
    """Raised when there are configuration issues."""
    pass


class DataAccessError(DealPulseError):
    """Base class for data access errors."""
    pass


class ConnectorError(DataAccessError):
    """A research source could not be fetched or decoded."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(f"{source}: {message}", **kwargs)
        self.source = source
        self.status_code = status_code


class PersistenceError(DataAccessError):
    """Reading or writing the research store failed."""
    pass


class GenerationError(DealPulseError):
    """Base class for generative service failures."""
    pass


class GenerationTimeoutError(GenerationError):
    """The generative service did not answer within the configured timeout."""
    pass


class GenerationTransportError(GenerationError):
    """The generative service call failed in transit or returned an error."""
    pass


class MissingCredentialError(GenerationError):
    """No API key is configured for the generative service."""
    pass


class ResponseParseError(DealPulseError):
    """No parse strategy could extract a JSON object from a response."""
    pass


class EntityError(DealPulseError):
    """Base class for errors scoped to a single entity."""

    def __init__(self, message: str, entity_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.entity_id = entity_id


class EntityNotFoundError(EntityError):
    """The requested entity is not in the roster."""
    pass


class MissingIdentifiersError(EntityError):
    """The entity lacks an id or owning user id."""
    pass
