"""Простейший контейнер зависимостей для сервисов."""

from __future__ import annotations

from functools import lru_cache

from services.company_settings_service import CompanySettingsRepository, CompanySettingsService
from services.customers.customer_service import CustomerService
from services.customers.import_service import CustomerImportService
from services.customers.search_service import CustomerSearchService
from services.export_service import CustomerExportService, InvoiceExportService
from services.invoices.invoice_service import InvoiceService
from services.invoices.repository import InvoiceRepository
from services.products.product_service import ProductRepository, ProductService
from services.repositories import CustomerRepository, TagRepository
from services.tags.tag_service import CustomerTagService, TagService


@lru_cache()
def get_customer_repository() -> CustomerRepository:
    return CustomerRepository()


@lru_cache()
def get_tag_repository() -> TagRepository:
    return TagRepository()


@lru_cache()
def get_invoice_repository() -> InvoiceRepository:
    return InvoiceRepository()


@lru_cache()
def get_customer_service() -> CustomerService:
    return CustomerService(get_customer_repository(), get_tag_repository())


@lru_cache()
def get_customer_search_service() -> CustomerSearchService:
    """Получить синглтон поиска клиентов."""

    return CustomerSearchService(get_customer_repository(), get_tag_repository())


@lru_cache()
def get_tag_service() -> TagService:
    return TagService(get_tag_repository())


@lru_cache()
def get_customer_tag_service() -> CustomerTagService:
    return CustomerTagService(get_customer_repository(), get_tag_repository())


@lru_cache()
def get_customer_import_service() -> CustomerImportService:
    return CustomerImportService(get_customer_service(), get_tag_service())


@lru_cache()
def get_customer_export_service() -> CustomerExportService:
    return CustomerExportService(get_customer_repository(), get_tag_repository())


@lru_cache()
def get_invoice_service() -> InvoiceService:
    return InvoiceService(get_invoice_repository())


@lru_cache()
def get_invoice_export_service() -> InvoiceExportService:
    return InvoiceExportService(get_invoice_repository())


@lru_cache()
def get_product_service() -> ProductService:
    return ProductService(ProductRepository())


@lru_cache()
def get_company_settings_service() -> CompanySettingsService:
    return CompanySettingsService(CompanySettingsRepository())


__all__ = [
    "get_customer_repository",
    "get_tag_repository",
    "get_invoice_repository",
    "get_customer_service",
    "get_customer_search_service",
    "get_tag_service",
    "get_customer_tag_service",
    "get_customer_import_service",
    "get_customer_export_service",
    "get_invoice_service",
    "get_invoice_export_service",
    "get_product_service",
    "get_company_settings_service",
]
