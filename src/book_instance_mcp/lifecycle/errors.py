"""Error taxonomy for book instance lifecycle operations.

Each error carries the kind name and the HTTP-style status code the
request layer reports for it. The core only raises them; it never
decides how they are rendered.
"""


class LifecycleError(Exception):
    """Base class for lifecycle failures."""

    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LifecycleError):
    """The instance id does not resolve to a stored instance."""

    kind = "NotFound"
    status_code = 404


class BadRequestError(LifecycleError):
    """Malformed input: unknown status, missing reader, unknown book."""

    kind = "BadRequest"
    status_code = 400


class ForbiddenError(LifecycleError):
    """The caller's role may not perform the operation."""

    kind = "Forbidden"
    status_code = 403


class ConflictError(LifecycleError):
    """The transition is not allowed from the current state, or lost a race."""

    kind = "Conflict"
    status_code = 409


class DependencyFailureError(LifecycleError):
    """The policy store or repository could not serve the request."""

    kind = "DependencyFailure"
    status_code = 500
