"""Error envelope for versioning and gateway failures.

Every handled error is returned as
``{"success": false, "error": {"code", "message", "details"?}}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from intellayer.llm.gateway import GatewayError
from intellayer.versioning.errors import VersioningError

logger = logging.getLogger(__name__)


def error_body(error: dict, request_id: str | None = None) -> dict:
    body = {"success": False, "error": error}
    if request_id:
        body["meta"] = {"request_id": request_id}
    return body


async def versioning_error_handler(request: Request, exc: VersioningError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.to_dict(), getattr(request.state, "request_id", None)),
    )


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.warning("%s %s -> LLM gateway failure: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.to_dict(), getattr(request.state, "request_id", None)),
        headers={"Retry-After": "30"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(VersioningError, versioning_error_handler)
    app.add_exception_handler(GatewayError, gateway_error_handler)
