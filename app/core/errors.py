from __future__ import annotations

import logging
from typing import Iterable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

_LOG = logging.getLogger("app.errors")


class CheckoutFieldsError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"detail": self.message}


class ValidationError(CheckoutFieldsError):
    """Schema or submitted-value rule violation; always carries the complete list."""

    status_code = 400

    def __init__(self, errors: Iterable[str], message: str = "Validation failed"):
        self.errors = [str(item) for item in errors]
        super().__init__(message)

    def payload(self) -> dict:
        return {"detail": "; ".join(self.errors) or self.message, "errors": list(self.errors)}


class NotFoundError(CheckoutFieldsError):
    status_code = 404


class PersistenceError(CheckoutFieldsError):
    status_code = 500


class RateLimitError(CheckoutFieldsError):
    status_code = 429

    def __init__(self, message: str, retry_after_seconds: int):
        super().__init__(message)
        self.retry_after_seconds = max(int(retry_after_seconds), 1)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutFieldsError)
    async def _checkout_fields_error_handler(request: Request, exc: CheckoutFieldsError):
        if exc.status_code >= 500:
            _LOG.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        return JSONResponse(status_code=exc.status_code, content=exc.payload(), headers=headers)
