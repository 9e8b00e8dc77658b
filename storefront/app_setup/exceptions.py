"""
Gestionnaires d'exceptions.
- HTTPException: corps JSON {"detail": ...} standard.
- DocumentStoreError non interceptée: 502, la base documentaire est indisponible.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.infra.documents import DocumentStoreError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_json(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(DocumentStoreError)
    async def document_store_unavailable(request: Request, exc: DocumentStoreError):
        logger.error("Document store error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": "Service de données indisponible"})
