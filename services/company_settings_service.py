"""Реквизиты собственной компании (одна запись), печатаются в счетах."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from database.models import CompanySettings
from services.errors import FieldError, ValidationError, first_message
from services.repositories import store_errors
from services.validators import clean_str, is_valid_email

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "company_name": "会社名を入力してください",
    "address": "住所を入力してください",
    "phone": "電話番号を入力してください",
}

# поле: (обязательно, максимальная длина, сообщение «обязательно»)
FIELD_RULES: dict[str, tuple[bool, int | None, str]] = {
    "company_name": (True, 255, "会社名は必須です"),
    "address": (True, None, "住所は必須です"),
    "phone": (True, 50, "電話番号は必須です"),
    "postal_code": (False, 20, ""),
    "email": (False, 255, ""),
    "fax": (False, 50, ""),
}
FIELD_LABELS = {
    "company_name": "会社名",
    "address": "住所",
    "phone": "電話番号",
    "postal_code": "郵便番号",
    "email": "メールアドレス",
    "fax": "FAX番号",
}


@dataclass
class CompanySettingsDTO:
    id: str
    company_name: str
    address: str
    phone: str
    postal_code: str | None = None
    email: str | None = None
    fax: str | None = None
    bank_info: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, row: CompanySettings) -> "CompanySettingsDTO":
        return cls(
            id=str(row.id),
            company_name=row.company_name,
            address=row.address,
            phone=row.phone,
            postal_code=row.postal_code,
            email=row.email,
            fax=row.fax,
            bank_info=json.loads(row.bank_info) if row.bank_info else {},
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "postal_code": self.postal_code,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "fax": self.fax,
            "bank_info": self.bank_info,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def validate_settings(values: Mapping[str, Any]) -> tuple[dict[str, Any], list[FieldError]]:
    payload: dict[str, Any] = {}
    errors: list[FieldError] = []
    for name, (required, max_length, required_message) in FIELD_RULES.items():
        value = clean_str(values.get(name))
        if required and not value:
            errors.append(FieldError(name, required_message))
        elif value and max_length and len(value) > max_length:
            errors.append(FieldError(name, f"{FIELD_LABELS[name]}は{max_length}文字以内で入力してください"))
        payload[name] = value

    if payload.get("email") and not is_valid_email(payload["email"]):
        errors.append(FieldError("email", "メールアドレスの形式が不正です"))

    bank_info = values.get("bank_info")
    if bank_info is None:
        bank_info = {}
    if not isinstance(bank_info, dict):
        errors.append(FieldError("bank_info", "振込先情報の形式が不正です"))
    else:
        payload["bank_info"] = json.dumps(bank_info, ensure_ascii=False)
    return payload, errors


class CompanySettingsRepository:
    def first(self) -> CompanySettingsDTO | None:
        with store_errors("получение реквизитов"):
            row = CompanySettings.select().order_by(CompanySettings.created_at).first()
        return CompanySettingsDTO.from_model(row) if row else None

    def save(self, payload: dict[str, Any]) -> CompanySettingsDTO:
        with store_errors("сохранение реквизитов"):
            row = CompanySettings.select().order_by(CompanySettings.created_at).first()
            if row is None:
                row = CompanySettings.create(**payload)
            else:
                for key, value in payload.items():
                    setattr(row, key, value)
                row.touch()
                row.save()
        return CompanySettingsDTO.from_model(row)


class CompanySettingsService:
    def __init__(self, repository: CompanySettingsRepository) -> None:
        self._settings = repository

    def get(self) -> CompanySettingsDTO:
        """Текущие реквизиты; при первом обращении создаётся заготовка."""
        current = self._settings.first()
        if current is not None:
            return current
        logger.info("🛠 Реквизиты компании не найдены, создаём заготовку")
        return self._settings.save({**DEFAULT_SETTINGS, "bank_info": json.dumps({})})

    def update(self, values: Mapping[str, Any]) -> CompanySettingsDTO:
        payload, errors = validate_settings(values)
        if errors:
            raise ValidationError(first_message(errors, "入力内容に誤りがあります"), errors)
        settings = self._settings.save(payload)
        logger.info("✏️ Реквизиты компании обновлены")
        return settings
