import logging

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

from fleet.core.errors import (
    AlreadyLinked,
    FleetError,
    InUse,
    InvalidType,
    NotAvailable,
    NotFound,
    PartialCommitError,
    PermissionDenied,
    ValidationError,
    VehicleSold,
)
from fleet.services.storage import StorageError

logger = logging.getLogger("fleet.api")

STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (InvalidType, status.HTTP_409_CONFLICT),
    (NotAvailable, status.HTTP_409_CONFLICT),
    (AlreadyLinked, status.HTTP_409_CONFLICT),
    (VehicleSold, status.HTTP_409_CONFLICT),
    (InUse, status.HTTP_409_CONFLICT),
    (PartialCommitError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def http_error(exc: FleetError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_class, code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            status_code = code
            break
    if isinstance(exc, (ValidationError, PartialCommitError)):
        detail = exc.to_dict()
    else:
        detail = {"code": exc.code, "message": exc.message}
    return HTTPException(status_code=status_code, detail=detail)


def storage_error(exc: StorageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


def internal_error(message: str) -> JSONResponse:
    logger.exception(message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Ocorreu um erro, tente novamente mais tarde"},
    )
