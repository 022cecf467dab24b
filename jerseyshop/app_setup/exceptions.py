"""
Gestionnaires d'exceptions utilisés par la factory.
- StoreError (erreurs métier): code porté par l'exception, corps {"error": message}
- HTTPException (auth, rate limit, 500 génériques des vues): {"error": detail}
- RequestValidationError (schémas Pydantic): 400 {"error", "details"}
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from jerseyshop.errors import StoreError

logger = logging.getLogger(__name__)


def _error_body(message, details=None) -> dict:
    body = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.details))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # loc/msg/type seulement: le contexte Pydantic peut contenir des objets non sérialisables
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content=_error_body("Requête invalide", details))
