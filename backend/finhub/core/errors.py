"""
errors.py — JSON error envelope and exception handlers.

Every failure leaving the API has the shape:

    {"error": "<short message>", "details": "<optional detail>"}

Routes raise `ApiError`; anything else that escapes a route is logged and
rendered as a 500 with the same envelope.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from finhub.core.logging import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    """Error raised at the route boundary, rendered as the JSON envelope."""

    def __init__(
        self,
        status_code: int,
        error: str,
        details: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.error = error
        self.details = details
        super().__init__(error)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope handlers to the application."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request parameters",
                "details": "; ".join(problems),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "details": str(exc)},
        )
