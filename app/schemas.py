from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CustomerBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_type: str | None = None
    company_name: str | None = None
    name: str | None = None
    name_kana: str | None = None
    customer_class: str | None = Field(default=None, alias="class")
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
    tag_ids: list[str] | None = Field(default=None, alias="tagIds")


class CustomerCreate(CustomerBase):
    customer_type: str = "personal"


class CustomerUpdate(CustomerBase):
    pass


class TagIdsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tag_ids: list[str] = Field(alias="tagIds")


class AttachTagsPayload(TagIdsPayload):
    customer_id: str = Field(alias="customerId")


class TagPayload(BaseModel):
    name: str | None = None


class ExportOptionsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_format: str | None = Field(default=None, alias="dateFormat")
    include_deleted: bool = Field(default=False, alias="includeDeleted")


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_ids: Any = Field(default=None, alias="customerIds")
    options: ExportOptionsPayload | None = None


class InvoiceItemPayload(BaseModel):
    item_name: str | None = None
    quantity: Any = None
    unit_price: Any = None
    unit: str | None = None
    description: str | None = None
    product_id: str | None = None


class InvoiceBase(BaseModel):
    issue_date: str | None = None
    billing_name: str | None = None
    billing_address: str | None = None
    billing_honorific: str | None = None
    customer_id: str | None = None


class InvoiceCreate(InvoiceBase):
    items: list[InvoiceItemPayload] = Field(default_factory=list)


class InvoiceUpdate(InvoiceBase):
    items: list[InvoiceItemPayload] | None = None


class BulkDeleteRequest(BaseModel):
    invoice_ids: Any = None


class InvoiceExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invoice_ids: Any = None
    selected_fields: Any = Field(default=None, alias="fields")
    format: str = "csv"


class ProductPayload(BaseModel):
    name: str | None = None
    default_price: Any = None
    unit: str | None = None
    description: str | None = None


class CompanySettingsPayload(BaseModel):
    company_name: str | None = None
    postal_code: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    fax: str | None = None
    bank_info: Any = None
