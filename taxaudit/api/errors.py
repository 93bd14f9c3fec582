"""Translation of record store exceptions into HTTP errors."""

from fastapi import HTTPException, status

from taxaudit.records.errors import (
    AuthenticationError,
    DuplicateClientError,
    DuplicateEntryError,
    PermissionDeniedError,
    RecordError,
    RecordNotFoundError,
    ValidationFailedError,
    WorkflowGateError,
)


def validation_error(errors: dict[str, str]) -> HTTPException:
    """422 carrying the field-keyed error map."""
    return HTTPException(
        status_code=422,
        detail={"errors": errors},
    )


def http_error(exc: RecordError) -> HTTPException:
    """Map a store exception to the matching HTTP status."""
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationFailedError):
        return validation_error(exc.errors)
    if isinstance(exc, WorkflowGateError):
        return validation_error({"task_type": str(exc)})
    if isinstance(exc, (DuplicateEntryError, DuplicateClientError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, AuthenticationError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
