"""Иерархия прикладных ошибок и их HTTP-коды."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


class AppError(Exception):
    status_code = 500
    code = "APP_ERROR"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Входные данные не прошли проверку; ничего не изменено."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        errors: list[FieldError] | None = None,
        *,
        details: Any = None,
    ) -> None:
        self.errors = list(errors or [])
        if details is None and self.errors:
            details = [e.to_dict() for e in self.errors]
        super().__init__(message, details=details)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class StoreError(AppError):
    """Сбой хранилища; текст исключения скрывается в production."""

    status_code = 500
    code = "DATABASE_ERROR"

    def __init__(self, message: str, *, context: str | None = None) -> None:
        super().__init__(message)
        self.context = context

    def public_dict(self, *, expose: bool) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": "データベースエラーが発生しました"}
        if expose:
            body["details"] = {"message": self.message, "context": self.context}
        return body


def first_message(errors: list[FieldError], fallback: str) -> str:
    return errors[0].message if errors else fallback
