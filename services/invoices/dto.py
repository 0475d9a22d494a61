from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from database.models import Invoice, InvoiceItem
from services.invoices.calculation import tax


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class InvoiceItemDTO:
    id: str
    item_name: str
    quantity: Decimal
    unit_price: int
    amount: int
    unit: str = "個"
    description: str | None = None
    display_order: int = 0
    product_id: str | None = None

    @classmethod
    def from_model(cls, item: InvoiceItem) -> "InvoiceItemDTO":
        return cls(
            id=str(item.id),
            item_name=item.item_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            amount=item.amount,
            unit=item.unit,
            description=item.description,
            display_order=item.display_order,
            product_id=str(item.product_id) if item.product_id else None,
        )

    def to_dict(self) -> dict[str, Any]:
        quantity = self.quantity.normalize() if isinstance(self.quantity, Decimal) else self.quantity
        return {
            "id": self.id,
            "product_id": self.product_id,
            "item_name": self.item_name,
            "quantity": float(quantity),
            "unit": self.unit,
            "unit_price": self.unit_price,
            "amount": self.amount,
            "description": self.description,
            "display_order": self.display_order,
        }


@dataclass
class InvoiceDTO:
    id: str
    invoice_number: str
    issue_date: date
    billing_name: str
    total_amount: int
    billing_address: str | None = None
    billing_honorific: str = "様"
    customer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    items: list[InvoiceItemDTO] = field(default_factory=list)

    @classmethod
    def from_model(cls, invoice: Invoice, items: list[InvoiceItemDTO] | None = None) -> "InvoiceDTO":
        return cls(
            id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            issue_date=invoice.issue_date,
            billing_name=invoice.billing_name,
            billing_address=invoice.billing_address,
            billing_honorific=invoice.billing_honorific,
            total_amount=invoice.total_amount,
            customer_id=str(invoice.customer_id) if invoice.customer_id else None,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
            deleted_at=invoice.deleted_at,
            items=list(items or []),
        )

    @property
    def subtotal(self) -> int:
        return sum(item.amount for item in self.items)

    def to_dict(self, *, with_items: bool = True) -> dict[str, Any]:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "issue_date": _iso(self.issue_date),
            "customer_id": self.customer_id,
            "billing_name": self.billing_name,
            "billing_address": self.billing_address,
            "billing_honorific": self.billing_honorific,
            "total_amount": self.total_amount,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_items:
            data["subtotal"] = self.subtotal
            data["tax_amount"] = tax(self.subtotal)
            data["items"] = [item.to_dict() for item in self.items]
        return data


@dataclass(frozen=True)
class InvoiceItemInput:
    item_name: str
    quantity: Any
    unit_price: Any
    unit: str | None = None
    description: str | None = None
    product_id: str | None = None


@dataclass(frozen=True)
class InvoiceCreateCommand:
    issue_date: Any
    billing_name: str
    items: tuple[InvoiceItemInput, ...]
    billing_address: str | None = None
    billing_honorific: str | None = None
    customer_id: str | None = None


@dataclass(frozen=True)
class InvoiceUpdateCommand:
    """Частичное обновление; ``items`` целиком заменяют строки счёта."""

    id: str
    values: Mapping[str, Any] = field(default_factory=dict)
    items: tuple[InvoiceItemInput, ...] | None = None
