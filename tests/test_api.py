import re
import uuid

import pytest


@pytest.fixture
def client(api_client):
    return api_client


def _create_customer(client, **overrides):
    payload = {"name": "山田太郎", "customer_type": "personal", **overrides}
    response = client.post("/api/customers", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _create_tag(client, name):
    response = client.post("/api/tags", json={"name": name})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_status(client):
    assert client.get("/api/status").json() == {"status": "ok"}


def test_customer_crud_flow(client):
    created = _create_customer(client, **{"class": "A", "email": "yamada@example.com"})
    assert created["class"] == "A"

    fetched = client.get(f"/api/customers/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["email"] == "yamada@example.com"

    updated = client.put(f"/api/customers/{created['id']}", json={"memo": "更新"})
    assert updated.status_code == 200
    assert updated.json()["data"]["memo"] == "更新"
    assert updated.json()["data"]["class"] == "A"

    assert client.delete(f"/api/customers/{created['id']}").status_code == 200
    missing = client.get(f"/api/customers/{created['id']}")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "指定された顧客が見つかりません"}

    restored = client.post(f"/api/customers/{created['id']}/restore")
    assert restored.status_code == 200


def test_customer_validation_errors_are_400(client):
    response = client.post("/api/customers", json={"customer_type": "company", "name": "佐藤"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["details"][0]["field"] == "company_name"

    malformed = client.post("/api/customers", json={"name": {"nested": True}})
    assert malformed.status_code == 400
    assert malformed.json()["error"] == "リクエストの形式が不正です"


def test_search_endpoint(client):
    vip = _create_tag(client, "VIP")
    alice = _create_customer(client, name="Alice", tagIds=[vip["id"]])
    _create_customer(client, name="Bob")

    response = client.get("/api/customers/search", params={"tagIds": vip["id"]})
    body = response.json()
    assert response.status_code == 200
    assert body["totalCount"] == 1
    assert body["data"][0]["id"] == alice["id"]
    assert body["data"][0]["tags"][0]["name"] == "VIP"

    listing = client.get("/api/customers", params={"sortBy": "name", "sortOrder": "asc", "limit": "abc"})
    assert [c["name"] for c in listing.json()["data"]] == ["Alice", "Bob"]
    assert listing.json()["limit"] == 20


def test_customer_tag_routes(client):
    vip = _create_tag(client, "VIP")
    new = _create_tag(client, "新規")
    customer = _create_customer(client)
    url = f"/api/customers/{customer['id']}/tags"

    replaced = client.put(url, json={"tagIds": [vip["id"]]})
    assert replaced.status_code == 200
    assert replaced.json()["message"] == "タグを更新しました"

    added = client.post(url, json={"tagIds": [new["id"]]})
    assert added.json()["message"] == "1個のタグを追加しました"

    conflict = client.post(url, json={"tagIds": [new["id"]]})
    assert conflict.status_code == 409

    listed = client.get(url).json()["data"]
    assert sorted(t["name"] for t in listed) == ["VIP", "新規"]

    removed = client.delete(f"{url}/{vip['id']}")
    assert [t["name"] for t in removed.json()["data"]] == ["新規"]
    assert client.delete(f"{url}/{vip['id']}").status_code == 404

    attached = client.post(
        "/api/customers/attach-tags", json={"customerId": customer["id"], "tagIds": [vip["id"], new["id"]]}
    )
    assert attached.json()["message"] == "2個のタグを付与しました"


def test_tag_routes(client):
    tag = _create_tag(client, "VIP")
    assert client.post("/api/tags", json={"name": "VIP"}).status_code == 409
    assert client.post("/api/tags", json={"name": " "}).status_code == 400

    renamed = client.put(f"/api/tags/{tag['id']}", json={"name": "ゴールド"})
    assert renamed.json()["data"]["name"] == "ゴールド"

    customer = _create_customer(client, tagIds=[tag["id"]])
    stats = client.get("/api/tags/stats").json()["data"]["statistics"]
    assert stats["total_usage"] == 1

    deleted = client.delete(f"/api/tags/{tag['id']}")
    assert deleted.json()["message"] == "タグを削除しました（1件の顧客から関連付けを解除）"
    assert client.get(f"/api/customers/{customer['id']}/tags").json()["data"] == []
    assert client.get(f"/api/tags/{tag['id']}").status_code == 404


def test_export_endpoints(client):
    _create_customer(client, name="山田太郎")
    gone = _create_customer(client, name="削除済")
    client.delete(f"/api/customers/{gone['id']}")

    response = client.get("/api/customers/export", params={"dateFormat": "iso"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    text = response.content.decode("utf-8")
    assert text.startswith("\ufeff")
    assert "山田太郎" in text and "削除済" not in text

    with_deleted = client.get("/api/customers/export", params={"includeDeleted": "true"})
    assert "削除済" in with_deleted.content.decode("utf-8")

    stats = client.get("/api/customers/export/stats").json()["data"]
    assert stats["deletedCount"] == 1

    bad = client.post("/api/customers/export", json={"customerIds": "all"})
    assert bad.status_code == 400

    nothing = client.post("/api/customers/export", json={"customerIds": [str(uuid.uuid4())]})
    assert nothing.status_code == 404


def test_import_endpoint(client):
    content = "顧客種別,氏名,電話番号\n個人,山田太郎,03-1234-5678\n個人,山田次郎,0312345678\n個人,,\n"

    response = client.post(
        "/api/customers/import",
        files={"file": ("customers.csv", content.encode("utf-8-sig"), "text/csv")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"total": 3, "success": 1, "failed": 1, "skipped": 1}
    assert body["duplicates"][0]["field"] == "phone"

    wrong_type = client.post(
        "/api/customers/import", files={"file": ("customers.txt", b"x", "text/plain")}
    )
    assert wrong_type.status_code == 400


def test_template_endpoint(client):
    response = client.get("/api/customers/template")
    assert response.status_code == 200
    assert response.content.decode("utf-8").startswith("\ufeff顧客種別")
    assert re.search(
        r'filename="customer_import_template_\d{8}_\d{6}\.csv"', response.headers["content-disposition"]
    )


def test_invoice_flow(client):
    created = client.post(
        "/api/invoices",
        json={
            "issue_date": "2024-04-01",
            "billing_name": "株式会社テスト",
            "items": [
                {"item_name": "作業費", "quantity": 1, "unit_price": 3000},
                {"item_name": "部品", "quantity": 0.333, "unit_price": 2000},
            ],
        },
    )
    assert created.status_code == 201, created.text
    invoice = created.json()["data"]
    assert invoice["total_amount"] == 4032
    assert invoice["invoice_number"] == "INV-2024-0001"

    search = client.get("/api/invoices/search", params={"q": "テスト"}).json()["data"]
    assert search["stats"] == {"total_count": 1, "total_amount": 4032}

    updated = client.put(f"/api/invoices/{invoice['id']}", json={"billing_honorific": "御中"})
    assert updated.json()["data"]["billing_honorific"] == "御中"

    empty = client.post("/api/invoices", json={"issue_date": "2024-04-01", "billing_name": "x"})
    assert empty.status_code == 400


def test_bulk_delete_partial_is_200(client):
    ids = []
    for i in range(3):
        response = client.post(
            "/api/invoices",
            json={
                "issue_date": "2024-04-01",
                "billing_name": f"請求先{i}",
                "items": [{"item_name": "作業", "quantity": 1, "unit_price": 100}],
            },
        )
        ids.append(response.json()["data"]["id"])
    missing = [str(uuid.uuid4()), str(uuid.uuid4())]

    response = client.post("/api/invoices/bulk/delete", json={"invoice_ids": ids + missing})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert len(body["results"]["success"]) == 3
    assert len(body["results"]["failed"]) == 2

    all_missing = client.post("/api/invoices/bulk/delete", json={"invoice_ids": missing})
    assert all_missing.status_code == 500
    assert len(all_missing.json()["details"]) == 2

    assert client.post("/api/invoices/bulk/delete", json={"invoice_ids": []}).status_code == 400


def test_products_and_company_settings(client):
    product = client.post("/api/products", json={"name": "保守", "default_price": 5000, "unit": "月"})
    assert product.status_code == 201
    listing = client.get("/api/products").json()
    assert listing["pagination"]["total"] == 1

    settings = client.get("/api/company-settings")
    assert settings.status_code == 200
    invalid = client.put("/api/company-settings", json={"company_name": ""})
    assert invalid.status_code == 400


def test_invoice_bulk_export(client):
    created = client.post(
        "/api/invoices",
        json={
            "issue_date": "2024-04-01",
            "billing_name": "株式会社テスト",
            "items": [{"item_name": "作業費", "quantity": 2, "unit_price": 1500}],
        },
    ).json()["data"]

    response = client.post("/api/invoices/bulk/export", json={"invoice_ids": [created["id"]]})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="invoices_' in response.headers["content-disposition"]
    lines = response.content.decode("utf-8").split("\n")
    assert lines[0] == "\ufeff請求書番号,発行日,請求先,合計金額"
    assert lines[1] == "INV-2024-0001,2024-04-01,株式会社テスト,3300"

    as_json = client.post(
        "/api/invoices/bulk/export",
        json={"invoice_ids": [created["id"]], "fields": ["billing_name", "items"], "format": "json"},
    )
    assert as_json.json() == {"success": True, "data": [{"請求先": "株式会社テスト", "明細": "作業費×2"}], "count": 1}

    assert client.post("/api/invoices/bulk/export", json={"invoice_ids": []}).status_code == 400
    assert client.post(
        "/api/invoices/bulk/export", json={"invoice_ids": [created["id"]], "format": "xlsx"}
    ).status_code == 400
    assert client.post("/api/invoices/bulk/export", json={"invoice_ids": [str(uuid.uuid4())]}).status_code == 404
