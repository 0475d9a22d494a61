from datetime import date

import pytest
from fastapi.testclient import TestClient

from config import Settings
from services.company_settings_service import CompanySettingsRepository, CompanySettingsService
from services.customers.customer_service import CustomerService
from services.customers.dto import CustomerCreateCommand
from services.customers.import_service import CustomerImportService
from services.customers.search_service import CustomerSearchService
from services.export_service import CustomerExportService, InvoiceExportService
from services.invoices.dto import InvoiceCreateCommand, InvoiceItemInput
from services.invoices.invoice_service import InvoiceService
from services.invoices.repository import InvoiceRepository
from services.products.product_service import ProductRepository, ProductService
from services.repositories import CustomerRepository, TagRepository
from services.tags.tag_service import CustomerTagService, TagService


@pytest.fixture
def customer_repo():
    return CustomerRepository()


@pytest.fixture
def tag_repo():
    return TagRepository()


@pytest.fixture
def customer_service(customer_repo, tag_repo):
    return CustomerService(customer_repo, tag_repo)


@pytest.fixture
def search_service(customer_repo, tag_repo):
    return CustomerSearchService(customer_repo, tag_repo)


@pytest.fixture
def tag_service(tag_repo):
    return TagService(tag_repo)


@pytest.fixture
def customer_tag_service(customer_repo, tag_repo):
    return CustomerTagService(customer_repo, tag_repo)


@pytest.fixture
def import_service(customer_service, tag_service):
    return CustomerImportService(customer_service, tag_service)


@pytest.fixture
def export_service(customer_repo, tag_repo):
    return CustomerExportService(customer_repo, tag_repo)


@pytest.fixture
def invoice_repo():
    return InvoiceRepository()


@pytest.fixture
def invoice_service(invoice_repo):
    return InvoiceService(invoice_repo)


@pytest.fixture
def invoice_export_service(invoice_repo):
    return InvoiceExportService(invoice_repo)


@pytest.fixture
def product_service():
    return ProductService(ProductRepository())


@pytest.fixture
def company_settings_service():
    return CompanySettingsService(CompanySettingsRepository())


@pytest.fixture
def make_customer(customer_service):
    def _make_customer(name="山田太郎", customer_type="personal", **kwargs):
        command = CustomerCreateCommand(name=name, customer_type=customer_type, **kwargs)
        return customer_service.create(command)

    return _make_customer


@pytest.fixture
def make_invoice(invoice_service):
    def _make_invoice(billing_name="株式会社テスト", items=None, issue_date="2024-04-01", **kwargs):
        items = items or [InvoiceItemInput(item_name="作業費", quantity=1, unit_price=1000)]
        command = InvoiceCreateCommand(
            issue_date=issue_date,
            billing_name=billing_name,
            items=tuple(items),
            **kwargs,
        )
        return invoice_service.create(command)

    return _make_invoice


@pytest.fixture
def api_client(in_memory_db):
    from app.main import create_app

    app = create_app(Settings(environment="test"))
    return TestClient(app)


@pytest.fixture
def today():
    return date(2024, 4, 1)
