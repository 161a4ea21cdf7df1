from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder


class FeedError(Exception):
    """Base for every error surfaced to callers of the mutation/query surface."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class NotFoundError(FeedError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ValidationError(FeedError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation"


class UnauthenticatedError(FeedError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class ForbiddenError(FeedError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class ConflictError(FeedError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class StorageTransientError(FeedError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_transient"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (NotFoundError, ValidationError, UnauthenticatedError, ForbiddenError, ConflictError, StorageTransientError)
}


def error_from_code(code: str, detail: str) -> FeedError:
    return ERRORS_BY_CODE.get(code, FeedError)(detail)


async def feed_error_handler(request: Request, exc: FeedError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors()), "code": ValidationError.code},
    )
