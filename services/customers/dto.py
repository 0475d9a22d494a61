from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

from database.models import Customer, Tag


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class TagDTO:
    id: str
    name: str
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, tag: Tag) -> "TagDTO":
        return cls(id=str(tag.id), name=tag.name, created_at=tag.created_at)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "created_at": _iso(self.created_at)}


@dataclass
class TagUsageDTO(TagDTO):
    usage_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["usage_count"] = self.usage_count
        return data


@dataclass
class CustomerDTO:
    id: str
    name: str
    customer_type: str
    company_name: str | None = None
    name_kana: str | None = None
    customer_class: str | None = None
    birth_date: date | None = None
    postal_code: str | None = None
    prefecture: str | None = None
    city: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    contract_start_date: date | None = None
    invoice_method: str | None = None
    payment_terms: str | None = None
    memo: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    tags: list[TagDTO] = field(default_factory=list)

    @classmethod
    def from_model(cls, customer: Customer, tags: list[TagDTO] | None = None) -> "CustomerDTO":
        return cls(
            id=str(customer.id),
            name=customer.name,
            customer_type=customer.customer_type,
            company_name=customer.company_name,
            name_kana=customer.name_kana,
            customer_class=customer.customer_class,
            birth_date=customer.birth_date,
            postal_code=customer.postal_code,
            prefecture=customer.prefecture,
            city=customer.city,
            address=customer.address,
            phone=customer.phone,
            email=customer.email,
            contract_start_date=customer.contract_start_date,
            invoice_method=customer.invoice_method,
            payment_terms=customer.payment_terms,
            memo=customer.memo,
            created_at=customer.created_at,
            updated_at=customer.updated_at,
            deleted_at=customer.deleted_at,
            tags=list(tags or []),
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict[str, Any]:
        """JSON-представление; атрибут ``customer_class`` отдаётся как ``class``."""
        data: dict[str, Any] = {}
        for key in CUSTOMER_FIELDS:
            value = getattr(self, key)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            data["class" if key == "customer_class" else key] = value
        data["tags"] = [tag.to_dict() for tag in self.tags]
        return data


CUSTOMER_FIELDS = [
    "id",
    "customer_type",
    "company_name",
    "name",
    "name_kana",
    "customer_class",
    "birth_date",
    "postal_code",
    "prefecture",
    "city",
    "address",
    "phone",
    "email",
    "contract_start_date",
    "invoice_method",
    "payment_terms",
    "memo",
    "created_at",
    "updated_at",
    "deleted_at",
]

# Поля, которые клиент API может задавать сам
EDITABLE_FIELDS = [
    name
    for name in CUSTOMER_FIELDS
    if name not in {"id", "created_at", "updated_at", "deleted_at"}
]


@dataclass(frozen=True)
class CustomerCreateCommand:
    name: str
    customer_type: str
    company_name: str | None = None
    name_kana: str | None = None
    customer_class: str | None = None
    birth_date: str | None = None
    postal_code: str | None = None
    prefecture: str | None = None
    city: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    contract_start_date: str | None = None
    invoice_method: str | None = None
    payment_terms: str | None = None
    memo: str | None = None
    tag_ids: tuple[str, ...] = ()

    def to_payload(self) -> dict:
        payload: dict[str, object] = {}
        for key, value in asdict(self).items():
            if key == "tag_ids":
                continue
            if isinstance(value, str):
                value = value.strip()
            if value in (None, ""):
                continue
            payload[key] = value
        return payload


@dataclass(frozen=True)
class CustomerUpdateCommand:
    """Частичное обновление: в ``values`` только явно переданные поля."""

    id: str
    values: Mapping[str, Any] = field(default_factory=dict)
    tag_ids: tuple[str, ...] | None = None

    def to_payload(self) -> dict:
        payload: dict[str, object] = {}
        for key, value in self.values.items():
            if key not in EDITABLE_FIELDS:
                continue
            if isinstance(value, str):
                value = value.strip() or None
            payload[key] = value
        return payload
