"""Перевод прикладных ошибок в HTTP-ответы."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config import Settings
from services.errors import AppError, StoreError

logger = logging.getLogger(__name__)


def _field_path(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "request"


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("❌ %s %s: ошибка хранилища (%s)", request.method, request.url.path, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.public_dict(expose=not settings.is_production),
        )

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("❌ %s %s: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s → %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"field": _field_path(error.get("loc", ())), "message": error.get("msg", "")}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "リクエストの形式が不正です", "details": details},
        )
