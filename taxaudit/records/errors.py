"""Record store exceptions.

Routers translate these into HTTP responses; the store never raises
HTTPException itself.
"""


class RecordError(Exception):
    """Base class for record store failures."""


class RecordNotFoundError(RecordError):
    """A task entry, client or user id does not exist."""

    def __init__(self, kind: str, key: object) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class DuplicateEntryError(RecordError):
    """A task type was already submitted for the client."""


class DuplicateClientError(RecordError):
    """A client with the same name already exists."""


class WorkflowGateError(RecordError):
    """A gated task type was submitted before its prerequisites."""


class ValidationFailedError(RecordError):
    """Form validation produced field errors."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))


class PermissionDeniedError(RecordError):
    """The acting user's rights do not allow the operation."""


class AuthenticationError(RecordError):
    """Unknown username or wrong password."""

    def __init__(self, message: str = "Invalid username or password") -> None:
        super().__init__(message)
