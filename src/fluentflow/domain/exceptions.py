"""
Exception hierarchy for FluentFlow.

Scheduling code never raises; these cover the fallible boundaries
(import parsing, persistence, AI calls).
"""


class FluentFlowError(Exception):
    """Base exception for all FluentFlow errors."""

    pass


class ValidationError(FluentFlowError):
    """Raised when user-supplied input is rejected."""

    pass


class ImportFormatError(ValidationError):
    """Raised when import content cannot be turned into cards."""

    pass


class NotFoundError(FluentFlowError):
    """Raised when a requested book or session does not exist."""

    pass


class ConflictError(FluentFlowError):
    """Raised when creating a book whose id is already taken."""

    pass


class PersistenceError(FluentFlowError):
    """Raised when a storage backend fails to read or write."""

    pass


class AssistantError(FluentFlowError):
    """Raised when the language assistant returns an unusable response."""

    pass
