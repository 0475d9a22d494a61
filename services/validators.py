"""Валидаторы и нормализаторы входных данных."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime

from services.errors import FieldError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\d-]+$")
POSTAL_CODE_RE = re.compile(r"^\d{3}-?\d{4}$")
_SLASH_DATE_RE = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")
_WS_RE = re.compile(r"\s+")
_FULLWIDTH_TABLE = {
    code: code - 0xFEE0
    for start, end in ((0xFF10, 0xFF19), (0xFF21, 0xFF3A), (0xFF41, 0xFF5A))
    for code in range(start, end + 1)
}
_FULLWIDTH_TABLE[0x3000] = ord(" ")


def clean_str(value) -> str | None:
    """Обрезает пробелы; пустая строка превращается в ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_uuid(value) -> uuid.UUID | None:
    """UUID из строки или ``None``, если строка не является UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_RE.match(value))


def is_valid_postal_code(value: str) -> bool:
    return bool(POSTAL_CODE_RE.match(value))


def normalize_phone_key(phone: str | None) -> str:
    """Ключ для сравнения телефонов: без дефисов и пробелов."""
    return re.sub(r"[\s-]", "", phone or "")


def normalize_email_key(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_date(value) -> str | None:
    """Приводит ``YYYY/M/D`` и ``YYYY-MM-DD`` к ``YYYY-MM-DD``.

    Пустое значение даёт ``None``. Некорректная дата вызывает ``ValueError``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        return None
    match = _SLASH_DATE_RE.match(text)
    if not match:
        raise ValueError(f"Некорректная дата: {text}")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day).isoformat()


def parse_date(value) -> date | None:
    normalized = normalize_date(value)
    return date.fromisoformat(normalized) if normalized else None


def normalize_search_query(query: str | None) -> str:
    """Полноширинные символы к ASCII, пробелы схлопываются.

    ``ＡＢＣ　１２３`` → ``ABC 123``.
    """
    if not query:
        return ""
    text = query.translate(_FULLWIDTH_TABLE)
    return _WS_RE.sub(" ", text).strip()


def tokenize_search_query(query: str | None) -> list[str]:
    normalized = normalize_search_query(query)
    return normalized.split(" ") if normalized else []


def validate_contact_fields(
    *,
    email: str | None = None,
    phone: str | None = None,
    postal_code: str | None = None,
) -> list[FieldError]:
    """Проверка формата контактов; пустые значения пропускаются."""
    errors: list[FieldError] = []
    if postal_code and not is_valid_postal_code(postal_code):
        errors.append(FieldError("postal_code", "郵便番号の形式が不正です"))
    if phone and not is_valid_phone(phone):
        errors.append(FieldError("phone", "電話番号の形式が不正です"))
    if email and not is_valid_email(email):
        errors.append(FieldError("email", "メールアドレスの形式が不正です"))
    return errors
