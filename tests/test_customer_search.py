import uuid

import pytest

from services.customers.search_service import CustomerSearchParams
from services.errors import StoreError


@pytest.fixture
def tagged_customers(in_memory_db, make_customer, tag_service, customer_tag_service):
    vip = tag_service.create("VIP")
    new = tag_service.create("新規")
    unused = tag_service.create("休眠")
    alice = make_customer(name="Alice", email="alice@example.com")
    bob = make_customer(name="Bob", phone="090-1111-2222")
    carol = make_customer(name="Carol", customer_type="company", company_name="Carol商事")
    customer_tag_service.replace(alice.id, [vip.id])
    customer_tag_service.replace(bob.id, [new.id])
    return {"vip": vip, "new": new, "unused": unused, "alice": alice, "bob": bob, "carol": carol}


def _names(result):
    return sorted(customer.name for customer in result.data)


def test_tag_filter_is_or(tagged_customers, search_service):
    params = CustomerSearchParams(tag_ids=[tagged_customers["vip"].id, tagged_customers["new"].id])

    result = search_service.search(params)

    assert _names(result) == ["Alice", "Bob"]
    assert result.total_count == 2


def test_unused_tag_short_circuits(tagged_customers, search_service, customer_repo, monkeypatch):
    def fail(**kwargs):
        raise AssertionError("search must not hit the customer table")

    monkeypatch.setattr(customer_repo, "search", fail)

    result = search_service.search(CustomerSearchParams(tag_ids=[tagged_customers["unused"].id]))

    assert result.data == []
    assert result.to_dict() == {"data": [], "totalCount": 0, "page": 1, "totalPages": 0, "limit": 20}


def test_soft_deleted_customers_are_hidden(tagged_customers, search_service, customer_service):
    customer_service.delete(tagged_customers["alice"].id)

    assert _names(search_service.search(CustomerSearchParams())) == ["Bob", "Carol"]
    result = search_service.search(CustomerSearchParams(tag_ids=[tagged_customers["vip"].id]))
    assert result.data == []


def test_text_search_over_several_fields(tagged_customers, search_service):
    assert _names(search_service.search(CustomerSearchParams(search_text="example.com"))) == ["Alice"]
    assert _names(search_service.search(CustomerSearchParams(search_text="1111"))) == ["Bob"]
    assert _names(search_service.search(CustomerSearchParams(search_text="商事"))) == ["Carol"]
    assert _names(search_service.search(CustomerSearchParams(search_text="alice bob"))) == []


def test_type_filter_and_sorting(tagged_customers, search_service):
    companies = search_service.search(CustomerSearchParams(customer_type="company"))
    assert _names(companies) == ["Carol"]

    ordered = search_service.search(CustomerSearchParams(sort_by="name", sort_order="asc"))
    assert [c.name for c in ordered.data] == ["Alice", "Bob", "Carol"]

    fallback = search_service.search(CustomerSearchParams(sort_by="email; DROP", sort_order="sideways"))
    assert fallback.total_count == 3


def test_pagination(tagged_customers, search_service):
    result = search_service.search(
        CustomerSearchParams(sort_by="name", sort_order="asc", page="2", limit="2")
    )

    assert [c.name for c in result.data] == ["Carol"]
    assert (result.total_count, result.page, result.total_pages, result.limit) == (3, 2, 2, 2)


def test_results_carry_tags(tagged_customers, search_service):
    result = search_service.search(CustomerSearchParams(search_text="Alice"))

    assert [t.name for t in result.data[0].tags] == ["VIP"]


def test_tag_lookup_failure_degrades_to_empty(tagged_customers, search_service, tag_repo, monkeypatch):
    def broken(customer_id):
        raise StoreError("connection lost", context="теги клиента")

    monkeypatch.setattr(tag_repo, "tags_for_customer", broken)

    result = search_service.search(CustomerSearchParams(search_text="Alice"))

    assert _names(result) == ["Alice"]
    assert result.data[0].tags == []


def test_unknown_tag_id_returns_empty_page(tagged_customers, search_service):
    result = search_service.search(CustomerSearchParams(tag_ids=[str(uuid.uuid4())]))
    assert result.total_count == 0


def test_classes_and_suggestions(in_memory_db, make_customer, search_service):
    make_customer(name="山田太郎", name_kana="ヤマダタロウ", customer_class="B")
    make_customer(name="山本花子", customer_class="A")
    make_customer(name="佐藤", customer_class="A")

    assert search_service.list_classes() == ["A", "B"]
    assert [c.name for c in search_service.suggestions("ヤマダ")] == ["山田太郎"]
    assert len(search_service.suggestions("山", limit=1)) == 1
    assert search_service.suggestions("  ") == []
