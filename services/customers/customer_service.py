"""Операции над клиентами: создание, изменение, мягкое удаление."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Sequence

from database.models import CustomerType, InvoiceMethod
from services.customers.dto import (
    CustomerCreateCommand,
    CustomerDTO,
    CustomerUpdateCommand,
)
from services.errors import FieldError, NotFoundError, ValidationError, first_message
from services.repositories import CustomerRepository, TagRepository
from services.validators import parse_date, parse_uuid, validate_contact_fields

logger = logging.getLogger(__name__)

CUSTOMER_NOT_FOUND = "指定された顧客が見つかりません"
DATE_FIELDS = ("birth_date", "contract_start_date")


def validate_customer_payload(payload: dict[str, Any], *, partial: bool = False) -> list[FieldError]:
    """Проверяет поля клиента и приводит даты к ``date``.

    При ``partial`` проверяются только присутствующие ключи.
    """
    errors: list[FieldError] = []

    if not partial or "name" in payload:
        if not payload.get("name"):
            errors.append(FieldError("name", "氏名は必須です"))

    if not partial or "customer_type" in payload:
        if payload.get("customer_type") not in CustomerType.ALL:
            errors.append(FieldError("customer_type", "顧客種別は company または personal を指定してください"))

    if payload.get("customer_type") == CustomerType.COMPANY and not payload.get("company_name"):
        errors.append(FieldError("company_name", "法人の場合は会社名が必須です"))

    method = payload.get("invoice_method")
    if method is not None and method not in InvoiceMethod.ALL:
        errors.append(FieldError("invoice_method", "請求書送付方法は mail または email を指定してください"))

    errors.extend(
        validate_contact_fields(
            email=payload.get("email"),
            phone=payload.get("phone"),
            postal_code=payload.get("postal_code"),
        )
    )

    for key in DATE_FIELDS:
        if payload.get(key) is None:
            continue
        try:
            payload[key] = parse_date(payload[key])
        except ValueError:
            errors.append(FieldError(key, "日付の形式が不正です"))

    return errors


def parse_tag_ids(values: Sequence[Any]) -> tuple[list[uuid.UUID], list[str]]:
    """Разбирает идентификаторы тегов: (корректные, некорректные)."""
    valid: list[uuid.UUID] = []
    invalid: list[str] = []
    for value in values:
        parsed = parse_uuid(value)
        if parsed is None:
            invalid.append(str(value))
        else:
            valid.append(parsed)
    return valid, invalid


def require_existing_tags(tags: TagRepository, tag_ids: Sequence[Any]) -> list[uuid.UUID]:
    """Все идентификаторы должны указывать на существующие теги, иначе 400."""
    valid, invalid = parse_tag_ids(tag_ids)
    existing = tags.existing_ids(valid)
    invalid.extend(str(tag_id) for tag_id in valid if tag_id not in existing)
    if invalid:
        raise ValidationError(f"無効なタグIDが含まれています: {', '.join(invalid)}")
    return valid


class CustomerService:
    """Фасад для CRUD-операций клиента."""

    def __init__(
        self,
        customer_repository: CustomerRepository,
        tag_repository: TagRepository,
    ) -> None:
        self._customers = customer_repository
        self._tags = tag_repository

    # ───── Получение ─────

    def _require_id(self, customer_id: Any) -> uuid.UUID:
        parsed = parse_uuid(customer_id)
        if parsed is None:
            raise NotFoundError(CUSTOMER_NOT_FOUND)
        return parsed

    def get(self, customer_id: Any) -> CustomerDTO:
        uid = self._require_id(customer_id)
        customer = self._customers.get(uid)
        if customer is None:
            raise NotFoundError(CUSTOMER_NOT_FOUND)
        customer.tags = self._tags.tags_for_customer(uid)
        return customer

    # ───── Изменение ─────

    def create(self, command: CustomerCreateCommand) -> CustomerDTO:
        payload = command.to_payload()
        errors = validate_customer_payload(payload)
        if errors:
            raise ValidationError(first_message(errors, "入力内容に誤りがあります"), errors)
        tag_ids = require_existing_tags(self._tags, command.tag_ids) if command.tag_ids else []

        customer = self._customers.create(payload)
        uid = uuid.UUID(customer.id)
        if tag_ids:
            self._tags.replace_customer_tags(uid, tag_ids)
            customer.tags = self._tags.tags_for_customer(uid)
        logger.info("✅ Клиент id=%s создан", customer.id)
        return customer

    def update(self, command: CustomerUpdateCommand) -> CustomerDTO:
        uid = self._require_id(command.id)
        current = self._customers.get(uid)
        if current is None:
            raise NotFoundError(CUSTOMER_NOT_FOUND)

        payload = command.to_payload()
        # тип и название компании проверяются вместе с текущими значениями
        merged = dict(payload)
        merged.setdefault("customer_type", current.customer_type)
        if "company_name" not in merged:
            merged["company_name"] = current.company_name
        errors = validate_customer_payload(merged, partial=True)
        if errors:
            raise ValidationError(first_message(errors, "入力内容に誤りがあります"), errors)
        for key in DATE_FIELDS:
            if key in payload:
                payload[key] = merged[key]

        tag_ids = None
        if command.tag_ids is not None:
            tag_ids = require_existing_tags(self._tags, command.tag_ids)

        customer = self._customers.update(uid, payload)
        if customer is None:
            raise NotFoundError(CUSTOMER_NOT_FOUND)
        if tag_ids is not None:
            self._tags.replace_customer_tags(uid, tag_ids)
        customer.tags = self._tags.tags_for_customer(uid)
        logger.info("✏️ Клиент id=%s обновлён: %s", customer.id, sorted(payload))
        return customer

    def delete(self, customer_id: Any) -> None:
        uid = self._require_id(customer_id)
        if not self._customers.soft_delete(uid):
            raise NotFoundError(CUSTOMER_NOT_FOUND)
        logger.info("🗑 Клиент id=%s помечен удалённым", uid)

    def restore(self, customer_id: Any) -> CustomerDTO:
        uid = self._require_id(customer_id)
        customer = self._customers.restore(uid)
        if customer is None:
            raise NotFoundError(CUSTOMER_NOT_FOUND)
        customer.tags = self._tags.tags_for_customer(uid)
        logger.info("♻️ Клиент id=%s восстановлен", uid)
        return customer
