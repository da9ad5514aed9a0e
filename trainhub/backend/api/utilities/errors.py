from fastapi import HTTPException, status

from ...exceptions import (
    AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ServiceError, ValidationFailedError,
)

_STATUS_BY_ERROR = (
    (ValidationFailedError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
)


def http_error_from(error: ServiceError) -> HTTPException:
    """Maps a service-layer error onto the HTTPException the API returns for it."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
            return HTTPException(status_code=status_code, detail=error.to_detail(), headers=headers)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.to_detail())
