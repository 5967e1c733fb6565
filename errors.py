"""
Taxonomie des erreurs de l'API et gestionnaires d'exceptions.

Toutes les erreurs métier sont des HTTPException : les routes les lèvent comme
n'importe quelle HTTPException, et les gestionnaires enregistrés sur
l'application les mettent au format {"msg": ...} ou {"errors": [...]}.
"""
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BadRequest(HTTPException):
    def __init__(self, msg: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=msg)


class ValidationFailed(HTTPException):
    """Erreur de validation avec une liste de problèmes par champ."""

    def __init__(self, errors: list):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=errors)


class Unauthenticated(HTTPException):
    def __init__(self, msg: str = "No token, authorization denied"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=msg,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Forbidden(HTTPException):
    def __init__(self, msg: str = "Not authorized"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=msg)


class NotFound(HTTPException):
    def __init__(self, msg: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=msg)


class Conflict(HTTPException):
    def __init__(self, msg: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=msg)


class CapacityExceeded(Conflict):
    def __init__(self, msg: str = "Workshop is full"):
        super().__init__(msg)


class Expired(HTTPException):
    def __init__(self, msg: str):
        super().__init__(status_code=status.HTTP_410_GONE, detail=msg)


class ServerError(HTTPException):
    def __init__(self, msg: str = "Server Error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=msg)


def _field_errors(exc: RequestValidationError) -> list:
    errors = []
    for err in exc.errors():
        errors.append({
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg"),
            "type": err.get("type"),
        })
    return errors


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, list):
        content = {"errors": exc.detail}
    else:
        content = {"msg": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(content),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": _field_errors(exc)},
    )


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.warning("Violation d'unicité sur %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"msg": "Duplicate value"})


async def unhandled_exception_handler(request: Request, exc: Exception):
    # Le détail interne reste dans les logs, jamais dans la réponse
    logger.exception("Erreur inattendue sur %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"msg": "Server Error"},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
