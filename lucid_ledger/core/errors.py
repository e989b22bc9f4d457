"""Domain error taxonomy and the FastAPI handlers that render it.

Services raise these; routes never build HTTPException for domain failures.
Every error renders as:

    {"detail": "...", "code": "FORBIDDEN", "request_id": "..."}
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(LedgerError):
    """Missing or malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(LedgerError):
    """Caller has no role on the contract, or the role may not do this."""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(LedgerError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(LedgerError):
    """Request is well formed but contradicts the current record state."""

    status_code = 409
    code = "CONFLICT"


class PersistenceError(LedgerError):
    status_code = 500
    code = "PERSISTENCE_ERROR"


class ChainReadError(LedgerError):
    """RPC failure reading a contract's on-chain state."""

    status_code = 502
    code = "CHAIN_READ_ERROR"

    def __init__(self, contract_address: str, message: str) -> None:
        super().__init__(f"{contract_address}: {message}")
        self.contract_address = contract_address


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request failed",
            extra={"path": request.url.path, "code": exc.code, "error": exc.message},
        )
    body = {"detail": exc.message, "code": exc.code, "request_id": _request_id(request)}
    if exc.field:
        body["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=body)


async def persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Driver messages can leak schema details; keep the body generic.
    logger.exception("database error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=PersistenceError.status_code,
        content={
            "detail": "Internal persistence error.",
            "code": PersistenceError.code,
            "request_id": _request_id(request),
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(SQLAlchemyError, persistence_error_handler)
