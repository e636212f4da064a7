from fastapi import HTTPException, status

from clinic.core.errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidInputError,
    NotFoundError,
    SchedulingError,
)

STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    InternalError: status.HTTP_503_SERVICE_UNAVAILABLE,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
}


def to_http_exception(exc: SchedulingError) -> HTTPException:
    status_code = STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = {'WWW-Authenticate': 'Bearer'} if isinstance(exc, AuthenticationError) else None
    return HTTPException(status_code=status_code, detail=exc.message, headers=headers)
