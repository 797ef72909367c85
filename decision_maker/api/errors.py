from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from decision_maker.core.exceptions import DecisionMakerError

logger = logging.getLogger(__name__)


async def handle_decision_maker_error(request: Request, exc: DecisionMakerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.user_message})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "failed"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DecisionMakerError, handle_decision_maker_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
