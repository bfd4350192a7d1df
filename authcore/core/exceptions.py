"""
Handlers de excepciones para exponer errores de tokens sin filtrar detalles.

El cliente siempre recibe el mismo mensaje opaco; el kind específico queda
sólo en los logs.
"""
import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from authcore.core.errors import LedgerWriteError, TokenError


def _req_id(request: Request) -> str | None:
    return getattr(getattr(request, "state", object()), "request_id", None)


def register_exception_handlers(app: FastAPI) -> None:
    log = logging.getLogger("authcore.errors")

    @app.exception_handler(LedgerWriteError)
    async def _ledger_handler(request: Request, exc: LedgerWriteError):
        rid = _req_id(request)
        log.error("Emisión fallida kind=%s sub=%s request_id=%s", exc.kind.value, exc.subject_id, rid)
        body: Dict[str, Any] = {"message": exc.public_message}
        if rid:
            body["request_id"] = rid
        return JSONResponse(status_code=503, content=body)

    @app.exception_handler(TokenError)
    async def _token_handler(request: Request, exc: TokenError):
        rid = _req_id(request)
        log.info("401 kind=%s path=%s request_id=%s", exc.kind.value, request.url.path, rid)
        body: Dict[str, Any] = {"message": TokenError.public_message}
        if rid:
            body["request_id"] = rid
        return JSONResponse(status_code=401, content=body, headers={"WWW-Authenticate": "Bearer"})
