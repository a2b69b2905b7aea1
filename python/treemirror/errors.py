"""
Typed errors raised by the mirror's public operations.

Every error carries the offending path (when there is one) and a stable
``kind`` label so callers can branch without string matching:

- invalid-argument: empty/malformed path, empty resolved name
- not-found: path absent from the index, parent not a directory
- conflict: target already exists (or is required to exist and doesn't)
- invalid-topology: destination is a descendant of the source
- permission-denied: root access not granted or revoked
- external-operation-failed: the underlying store call raised
"""

from typing import Optional


class MirrorError(Exception):
    """Base class for all mirror errors."""

    kind = "mirror-error"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class InvalidArgumentError(MirrorError):
    kind = "invalid-argument"


class NotFoundError(MirrorError):
    kind = "not-found"


class ConflictError(MirrorError):
    kind = "conflict"


class InvalidTopologyError(MirrorError):
    kind = "invalid-topology"


class PermissionDeniedError(MirrorError):
    kind = "permission-denied"


class ExternalOperationError(MirrorError):
    """A store call failed after it was issued.

    The original exception is chained as ``__cause__``.
    """

    kind = "external-operation-failed"
