"""
HTTP mapping for the credit ledger error taxonomy.

Routers let typed errors propagate; these handlers turn them into the
standard `ErrorResponse` body.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from domain.errors import (
    ConcurrentModification,
    CreditLedgerError,
    InvalidArgument,
    InvalidState,
    NotFound,
    OperationCancelled,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

# Most specific first; InsufficientCredit is an InvalidState.
_STATUS_CODES = (
    (InvalidArgument, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidState, status.HTTP_409_CONFLICT),
    (ConcurrentModification, status.HTTP_409_CONFLICT),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (OperationCancelled, status.HTTP_504_GATEWAY_TIMEOUT),
)


def status_code_for(exc: CreditLedgerError) -> int:
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def credit_ledger_exception_handler(request: Request, exc: CreditLedgerError) -> JSONResponse:
    code = status_code_for(exc)
    if code >= 500:
        logger.error(
            "Credit ledger request failed",
            extra={"path": request.url.path, "error_type": type(exc).__name__, "error": str(exc)},
        )
    return JSONResponse(
        status_code=code,
        content={"error": type(exc).__name__, "detail": str(exc), "status_code": code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CreditLedgerError, credit_ledger_exception_handler)


__all__ = ["register_exception_handlers", "status_code_for"]
