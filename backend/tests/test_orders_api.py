from datetime import date

import pytest

from salesavvy.errors import ConflictError
from salesavvy.models import Sale, SaleDetail
from salesavvy.stores.sales_store import SalesStore


def _order(catalog, lines, **extra):
    return {
        "custno": catalog["custno"],
        "empno": catalog["empno"],
        "salesdate": "2024-07-01",
        "lines": lines,
        **extra,
    }


def test_single_line_order(client, db_session, clerk_headers, catalog):
    res = client.post(
        "/api/sales/orders",
        json=_order(catalog, [{"prodcode": "P001", "quantity": 3}]),
        headers=clerk_headers,
    )

    assert res.status_code == 201
    body = res.json()
    assert body["created"] is True
    sale = body["sale"]
    assert sale["lines"][0]["unit_price"] == 12.5
    assert sale["lines"][0]["amount"] == 37.5
    assert sale["total"] == 37.5
    assert body["rows"][0]["id"] == f"{sale['transno']}-1"

    assert db_session.query(Sale).count() == 1
    assert db_session.query(SaleDetail).count() == 1


def test_order_without_lines_is_rejected_before_write(client, db_session, clerk_headers, catalog):
    res = client.post("/api/sales/orders", json=_order(catalog, []), headers=clerk_headers)

    assert res.status_code == 422
    assert "line items" in res.json()["detail"]
    assert db_session.query(Sale).count() == 0


def test_order_with_unknown_customer(client, db_session, clerk_headers, catalog):
    payload = _order(catalog, [{"prodcode": "P001", "quantity": 1}])
    payload["custno"] = "C999"

    res = client.post("/api/sales/orders", json=payload, headers=clerk_headers)

    assert res.status_code == 404
    assert db_session.query(Sale).count() == 0


def test_resubmission_with_same_key_returns_existing_order(client, db_session, clerk_headers, catalog):
    payload = _order(catalog, [{"prodcode": "P002", "quantity": 2}], idempotency_key="key-123")

    first = client.post("/api/sales/orders", json=payload, headers=clerk_headers)
    second = client.post("/api/sales/orders", json=payload, headers=clerk_headers)

    assert first.status_code == 201 and second.status_code == 201
    assert second.json()["created"] is False
    assert first.json()["sale"]["transno"] == second.json()["sale"]["transno"]
    assert db_session.query(Sale).count() == 1


def test_failed_line_insert_leaves_no_header(db_session, catalog):
    sales = SalesStore(db_session)
    with pytest.raises(ConflictError):
        sales.create_order("C001", "E001", None, [("P001", 1), ("P001", 2)])

    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleDetail).count() == 0


def test_order_requires_add_permissions(client, db_session, viewer_headers, catalog):
    res = client.post(
        "/api/sales/orders",
        json=_order(catalog, [{"prodcode": "P001", "quantity": 1}]),
        headers=viewer_headers,
    )

    assert res.status_code == 403
    assert db_session.query(Sale).count() == 0


def test_order_requires_login(client, catalog):
    res = client.post("/api/sales/orders", json=_order(catalog, [{"prodcode": "P001", "quantity": 1}]))
    assert res.status_code == 401


def test_existing_sale_edits_follow_permissions(client, clerk_headers, admin_headers, catalog):
    created = client.post(
        "/api/sales/orders",
        json=_order(catalog, [{"prodcode": "P001", "quantity": 1}]),
        headers=clerk_headers,
    ).json()
    transno = created["sale"]["transno"]

    # 追加権限しか持たないユーザーは編集・削除できない
    assert client.put(f"/api/sales/{transno}", json={"salesdate": "2024-02-01"}, headers=clerk_headers).status_code == 403
    assert client.delete(f"/api/sales/{transno}", headers=clerk_headers).status_code == 403

    res = client.post(f"/api/sales/{transno}/lines", json={"prodcode": "P002", "quantity": 4}, headers=clerk_headers)
    assert res.status_code == 201
    assert res.json()["sale"]["total"] == 32.5

    res = client.put(f"/api/sales/{transno}", json={"salesdate": "2024-02-01"}, headers=admin_headers)
    assert res.status_code == 200
    # 売上日が変わると単価も変わる
    assert res.json()["sale"]["total"] == 30.0

    res = client.put(f"/api/sales/{transno}/lines/P002", json={"quantity": 1}, headers=admin_headers)
    assert res.json()["sale"]["total"] == 15.0

    res = client.delete(f"/api/sales/{transno}/lines/P001", headers=admin_headers)
    assert [line["prodcode"] for line in res.json()["sale"]["lines"]] == ["P002"]

    assert client.delete(f"/api/sales/{transno}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/sales/{transno}", headers=admin_headers).status_code == 404


def test_duplicate_line_on_existing_sale(client, clerk_headers, catalog):
    transno = client.post(
        "/api/sales/orders",
        json=_order(catalog, [{"prodcode": "P001", "quantity": 1}]),
        headers=clerk_headers,
    ).json()["sale"]["transno"]

    res = client.post(f"/api/sales/{transno}/lines", json={"prodcode": "P001"}, headers=clerk_headers)
    assert res.status_code == 409


def test_sales_list(client, clerk_headers, viewer_headers, catalog):
    client.post(
        "/api/sales/orders",
        json=_order(catalog, [{"prodcode": "P001", "quantity": 2}]),
        headers=clerk_headers,
    )

    res = client.get("/api/sales", headers=viewer_headers)

    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 1
    row = body["data"][0]
    assert row["customer_name"] == "Acme Trading"
    assert row["employee_name"] == "Ana Reyes"
    assert row["line_count"] == 1
    assert row["total"] == 25.0


def test_resubmission_rows_come_from_stored_order(client, clerk_headers, catalog):
    payload = _order(catalog, [{"prodcode": "P002", "quantity": 2}], idempotency_key="key-rows")
    first = client.post("/api/sales/orders", json=payload, headers=clerk_headers).json()

    second = client.post("/api/sales/orders", json=payload, headers=clerk_headers).json()

    assert second["rows"] == first["rows"]
    assert sum(row["amount"] for row in second["rows"]) == second["sale"]["total"] == 10.0


def test_idempotency_key_is_scoped_per_user(client, db_session, clerk_headers, make_user, auth_headers, catalog):
    client.post(
        "/api/sales/orders",
        json=_order(catalog, [{"prodcode": "P002", "quantity": 2}], idempotency_key="k1"),
        headers=clerk_headers,
    )
    other = make_user("other@salesavvy.test", add_sales=True, add_sales_detail=True)

    res = client.post(
        "/api/sales/orders",
        json=_order(catalog, [{"prodcode": "P001", "quantity": 9}], idempotency_key="k1"),
        headers=auth_headers(other),
    )

    assert res.status_code == 201
    body = res.json()
    assert body["created"] is True
    assert [(line["prodcode"], line["quantity"]) for line in body["sale"]["lines"]] == [("P001", 9)]
    assert body["sale"]["total"] == 112.5
    assert db_session.query(Sale).count() == 2


@pytest.mark.parametrize(
    "change",
    [
        {"lines": [{"prodcode": "P001", "quantity": 9}]},
        {"lines": [{"prodcode": "P002", "quantity": 3}]},
        {"salesdate": "2024-07-02"},
        {"custno": "C002"},
        {"empno": "E002"},
    ],
)
def test_same_key_with_different_order_conflicts(client, db_session, clerk_headers, catalog, change):
    payload = _order(catalog, [{"prodcode": "P002", "quantity": 2}], idempotency_key="k1")
    first = client.post("/api/sales/orders", json=payload, headers=clerk_headers)
    assert first.status_code == 201

    res = client.post("/api/sales/orders", json={**payload, **change}, headers=clerk_headers)

    assert res.status_code == 409
    assert first.json()["sale"]["transno"] in res.json()["detail"]
    assert db_session.query(Sale).count() == 1


def test_store_rejects_reused_key_with_other_lines(db_session, catalog):
    sales = SalesStore(db_session)
    sale, _ = sales.create_order("C001", "E001", date(2024, 7, 1), [("P002", 2)], idempotency_key="k1", created_by=None)

    again, created = sales.create_order("C001", "E001", date(2024, 7, 1), [("P002", 2)], idempotency_key="k1")
    assert again.transno == sale.transno and not created

    with pytest.raises(ConflictError):
        sales.create_order("C001", "E001", date(2024, 7, 1), [("P001", 1)], idempotency_key="k1")
    assert db_session.query(Sale).count() == 1
