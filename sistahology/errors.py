"""Domain errors raised by the data-access layer.

Handlers registered in ``main.py`` translate these into HTTP responses.
Messages are deliberately generic: a denial never says which rule failed.
"""


class SistahologyError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 400
    detail = "Bad request"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class Forbidden(SistahologyError):
    """The caller is not permitted to perform the operation."""

    status_code = 403
    detail = "Not permitted"


class PrivilegeEscalationError(Forbidden):
    """An ordinary principal tried to change the admin flag."""

    detail = "forbidden: privilege change not permitted through this path"


class NotFound(SistahologyError):
    """The row does not exist or is not visible to the caller."""

    status_code = 404
    detail = "Not found"


class Conflict(SistahologyError):
    """The row is not in a state that allows the operation."""

    status_code = 409
    detail = "Conflict"


class EntryStateError(Conflict):
    """Trash transition requested from the wrong state."""


class ValidationFailed(SistahologyError):
    """Input violates a constraint that schema validation cannot see."""

    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
