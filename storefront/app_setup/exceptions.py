"""
Gestionnaires d'exceptions.
- AppError (erreurs métier): statut et code de l'erreur, corps {"detail", "code"}.
- ExternalServiceError: message générique côté client, détail technique journalisé.
- HTTPException: corps JSON FastAPI standard.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.errors import AppError, ExternalServiceError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, ExternalServiceError):
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, getattr(exc, "detail", ""))
        elif exc.status_code >= 500:
            logger.error("%s %s -> %s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
