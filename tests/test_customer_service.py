import uuid
from datetime import date

import pytest

from services.customers.dto import CustomerCreateCommand, CustomerUpdateCommand
from services.errors import NotFoundError, ValidationError


def test_create_and_get_customer(in_memory_db, customer_service, make_customer):
    created = make_customer(
        name=" 山田太郎 ",
        email="yamada@example.com",
        phone="03-1234-5678",
        postal_code="123-4567",
        birth_date="1980/1/15",
        customer_class="A",
    )

    fetched = customer_service.get(created.id)

    assert fetched.name == "山田太郎"
    assert fetched.birth_date == date(1980, 1, 15)
    assert fetched.customer_class == "A"
    assert fetched.to_dict()["class"] == "A"
    assert fetched.to_dict()["birth_date"] == "1980-01-15"


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"name": ""}, "name"),
        ({"customer_type": "robot"}, "customer_type"),
        ({"customer_type": "company"}, "company_name"),
        ({"email": "not-an-email"}, "email"),
        ({"postal_code": "12345"}, "postal_code"),
        ({"phone": "phone"}, "phone"),
        ({"invoice_method": "fax"}, "invoice_method"),
        ({"contract_start_date": "2024/02/31"}, "contract_start_date"),
    ],
)
def test_create_validation(in_memory_db, customer_service, kwargs, field):
    values = {"name": "山田太郎", "customer_type": "personal", **kwargs}

    with pytest.raises(ValidationError) as exc_info:
        customer_service.create(CustomerCreateCommand(**values))

    assert field in [e.field for e in exc_info.value.errors]
    assert exc_info.value.status_code == 400


def test_create_with_unknown_tag_is_rejected(in_memory_db, customer_service):
    missing = str(uuid.uuid4())
    command = CustomerCreateCommand(name="山田", customer_type="personal", tag_ids=(missing,))

    with pytest.raises(ValidationError, match="無効なタグID"):
        customer_service.create(command)


def test_create_attaches_tags(in_memory_db, tag_service, make_customer):
    vip = tag_service.create("VIP")

    customer = make_customer(tag_ids=(vip.id,))

    assert [t.name for t in customer.tags] == ["VIP"]


def test_partial_update_keeps_other_fields(in_memory_db, customer_service, make_customer):
    customer = make_customer(email="old@example.com", memo="メモ")

    updated = customer_service.update(
        CustomerUpdateCommand(id=customer.id, values={"email": "new@example.com"})
    )

    assert updated.email == "new@example.com"
    assert updated.memo == "メモ"
    assert updated.name == customer.name


def test_update_to_company_requires_company_name(in_memory_db, customer_service, make_customer):
    customer = make_customer()

    with pytest.raises(ValidationError) as exc_info:
        customer_service.update(
            CustomerUpdateCommand(id=customer.id, values={"customer_type": "company"})
        )

    assert exc_info.value.errors[0].field == "company_name"


def test_delete_and_restore(in_memory_db, customer_service, make_customer):
    customer = make_customer()

    customer_service.delete(customer.id)
    with pytest.raises(NotFoundError):
        customer_service.get(customer.id)
    with pytest.raises(NotFoundError):
        customer_service.delete(customer.id)

    restored = customer_service.restore(customer.id)
    assert restored.deleted_at is None
    assert customer_service.get(customer.id).id == customer.id


@pytest.mark.parametrize("customer_id", ["nope", str(uuid.uuid4())])
def test_missing_customer(in_memory_db, customer_service, customer_id):
    with pytest.raises(NotFoundError, match="指定された顧客が見つかりません"):
        customer_service.get(customer_id)
