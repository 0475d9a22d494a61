"""Справочник товаров и услуг для строк счёта."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from database.models import Product
from services.errors import FieldError, NotFoundError, ValidationError, first_message
from services.query_utils import apply_text_search, normalize_pagination, paginate, total_pages
from services.repositories import store_errors
from services.validators import clean_str, parse_uuid

logger = logging.getLogger(__name__)

PRODUCT_NOT_FOUND = "商品が見つかりません"
NAME_MAX_LENGTH = 100
UNIT_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 500


@dataclass
class ProductDTO:
    id: str
    name: str
    default_price: int
    unit: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, product: Product) -> "ProductDTO":
        return cls(
            id=str(product.id),
            name=product.name,
            default_price=product.default_price,
            unit=product.unit,
            description=product.description,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "default_price": self.default_price,
            "unit": self.unit,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ProductPage:
    items: list[ProductDTO]
    total: int
    page: int
    limit: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "data": [item.to_dict() for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "totalPages": total_pages(self.total, self.limit),
            },
        }


def validate_product(values: Mapping[str, Any], *, partial: bool = False) -> tuple[dict[str, Any], list[FieldError]]:
    """Проверяет и нормализует поля товара."""
    payload: dict[str, Any] = {}
    errors: list[FieldError] = []

    if not partial or "name" in values:
        name = clean_str(values.get("name"))
        if not name:
            errors.append(FieldError("name", "商品名は必須です"))
        elif len(name) > NAME_MAX_LENGTH:
            errors.append(FieldError("name", f"商品名は{NAME_MAX_LENGTH}文字以内で入力してください"))
        payload["name"] = name

    if not partial or "default_price" in values:
        raw = values.get("default_price", 0)
        try:
            price = Decimal(str(raw if raw is not None else 0))
            if not price.is_finite() or price < 0:
                raise InvalidOperation
            payload["default_price"] = int(price)
        except (InvalidOperation, ValueError):
            errors.append(FieldError("default_price", "単価は0以上の数値を入力してください"))

    if not partial or "unit" in values:
        unit = clean_str(values.get("unit"))
        if not unit:
            errors.append(FieldError("unit", "単位は必須です"))
        elif len(unit) > UNIT_MAX_LENGTH:
            errors.append(FieldError("unit", f"単位は{UNIT_MAX_LENGTH}文字以内で入力してください"))
        payload["unit"] = unit

    if "description" in values:
        description = clean_str(values.get("description"))
        if description and len(description) > DESCRIPTION_MAX_LENGTH:
            errors.append(
                FieldError("description", f"説明は{DESCRIPTION_MAX_LENGTH}文字以内で入力してください")
            )
        payload["description"] = description

    return payload, errors


class ProductRepository:
    def list(self, search_text: str | None, page: int, limit: int) -> tuple[list[ProductDTO], int]:
        query = apply_text_search(Product.active(), (Product.name,), search_text)
        query = query.order_by(Product.created_at.desc(), Product.id.desc())
        with store_errors("список товаров"):
            rows, total = paginate(query, page, limit)
        return [ProductDTO.from_model(row) for row in rows], total

    def get(self, product_id: uuid.UUID) -> ProductDTO | None:
        with store_errors("получение товара"):
            product = Product.active().where(Product.id == product_id).first()
        return ProductDTO.from_model(product) if product else None

    def create(self, payload: dict[str, Any]) -> ProductDTO:
        with store_errors("создание товара"):
            product = Product.create(**payload)
        return ProductDTO.from_model(product)

    def update(self, product_id: uuid.UUID, payload: dict[str, Any]) -> ProductDTO | None:
        with store_errors("обновление товара"):
            product = Product.active().where(Product.id == product_id).first()
            if product is None:
                return None
            for key, value in payload.items():
                setattr(product, key, value)
            product.touch()
            product.save()
        return ProductDTO.from_model(product)

    def soft_delete(self, product_id: uuid.UUID) -> bool:
        with store_errors("удаление товара"):
            product = Product.active().where(Product.id == product_id).first()
            if product is None:
                return False
            product.soft_delete()
        return True


class ProductService:
    def __init__(self, repository: ProductRepository) -> None:
        self._products = repository

    def _require_id(self, product_id: Any) -> uuid.UUID:
        parsed = parse_uuid(product_id)
        if parsed is None:
            raise NotFoundError(PRODUCT_NOT_FOUND)
        return parsed

    def list(self, search: str | None = None, page: Any = 1, limit: Any = 20) -> ProductPage:
        page_num, limit_num = normalize_pagination(page, limit)
        items, total = self._products.list(search, page_num, limit_num)
        return ProductPage(items=items, total=total, page=page_num, limit=limit_num)

    def get(self, product_id: Any) -> ProductDTO:
        product = self._products.get(self._require_id(product_id))
        if product is None:
            raise NotFoundError(PRODUCT_NOT_FOUND)
        return product

    def create(self, values: Mapping[str, Any]) -> ProductDTO:
        payload, errors = validate_product(values)
        if errors:
            raise ValidationError(first_message(errors, "入力内容に誤りがあります"), errors)
        product = self._products.create(payload)
        logger.info("✅ Товар id=%s «%s» создан", product.id, product.name)
        return product

    def update(self, product_id: Any, values: Mapping[str, Any]) -> ProductDTO:
        uid = self._require_id(product_id)
        payload, errors = validate_product(values, partial=True)
        if errors:
            raise ValidationError(first_message(errors, "入力内容に誤りがあります"), errors)
        product = self._products.update(uid, payload)
        if product is None:
            raise NotFoundError(PRODUCT_NOT_FOUND)
        logger.info("✏️ Товар id=%s обновлён", uid)
        return product

    def delete(self, product_id: Any) -> None:
        uid = self._require_id(product_id)
        if not self._products.soft_delete(uid):
            raise NotFoundError(PRODUCT_NOT_FOUND)
        logger.info("🗑 Товар id=%s помечен удалённым", uid)
