"""Error taxonomy shared by the GL services.

``ValidationError`` always aborts the posting attempt.  ``PostingError`` from a
reversal is recoverable by policy (see ``reversal_engine.reverse_entry_safely``).
``NotFoundError`` for float mappings is absorbed by the statement service;
``AccessDeniedError`` always propagates.
"""


class GLError(Exception):
    """Base exception for the GL core."""


class ValidationError(GLError):
    """Entry or mapping failed validation and must not be persisted."""


class DuplicateReversalError(ValidationError):
    """The original entry already has a reversal."""


class NotFoundError(GLError):
    """Referenced account, entry or float account does not exist."""


class AccessDeniedError(GLError):
    """Caller's branch scope excludes the requested float account."""


class PostingError(GLError):
    """The store rejected or failed a journal-entry write."""
