def test_employee_list_display_shape(client, viewer_headers, catalog):
    res = client.get("/api/employees", headers=viewer_headers)

    assert res.status_code == 200
    row = res.json()["data"][0]
    assert row["empno"] == "E001"
    assert row["name"] == "Ana Reyes"
    assert row["hiredate"] == "2020-04-01"
    assert row["position"] == "Sales Representative"
    assert row["department"] == "Sales"
    assert row["status"] == "Active"


def test_empty_lists_are_not_errors(client, viewer_headers):
    for path in ("/api/employees", "/api/products", "/api/customers", "/api/sales"):
        res = client.get(path, headers=viewer_headers)
        assert res.status_code == 200
        assert res.json() == {"data": [], "count": 0}


def test_add_employee_generates_number(client, admin_headers):
    res = client.post("/api/employees", json={"firstname": "Ben", "lastname": "Cruz"}, headers=admin_headers)

    assert res.status_code == 201
    empno = res.json()["employee"]["empno"]
    assert empno.startswith("EMP") and len(empno) == 7 and empno[3:].isdigit()


def test_edit_and_separate_employee(client, admin_headers, catalog):
    res = client.put("/api/employees/E001", json={"sepdate": "2024-12-31"}, headers=admin_headers)

    assert res.status_code == 200
    assert res.json()["employee"]["status"] == "Separated"


def test_employee_with_sales_cannot_be_deleted(client, admin_headers, catalog):
    client.post(
        "/api/sales/orders",
        json={"custno": "C001", "empno": "E001", "lines": [{"prodcode": "P002", "quantity": 1}]},
        headers=admin_headers,
    )

    assert client.delete("/api/employees/E001", headers=admin_headers).status_code == 409


def test_delete_employee(client, admin_headers, catalog):
    assert client.delete("/api/employees/E001", headers=admin_headers).status_code == 200
    assert client.get("/api/employees/E001", headers=admin_headers).status_code == 404


def test_employee_writes_require_admin(client, viewer_headers, catalog):
    assert client.post("/api/employees", json={"firstname": "Ben"}, headers=viewer_headers).status_code == 403
    assert client.delete("/api/employees/E001", headers=viewer_headers).status_code == 403


def test_product_list_uses_reference_date(client, viewer_headers, catalog):
    latest = client.get("/api/products", headers=viewer_headers).json()["data"]
    assert latest[0]["current_price"] == 12.5

    earlier = client.get("/api/products", params={"as_of": "2024-03-01"}, headers=viewer_headers).json()["data"]
    assert earlier[0]["current_price"] == 10.0


def test_product_detail_has_history(client, viewer_headers, catalog):
    res = client.get("/api/products/P001", headers=viewer_headers)

    body = res.json()
    assert body["original_price"] == 10.0
    assert body["current_price"] == 12.5
    assert [h["effdate"] for h in body["price_history"]] == ["2024-01-01", "2024-06-01"]


def test_add_product_and_price(client, admin_headers):
    res = client.post(
        "/api/products",
        json={"prodcode": "P100", "description": "Stapler", "unit": "pc", "unitprice": 3.0, "effdate": "2024-01-01"},
        headers=admin_headers,
    )
    assert res.status_code == 201

    res = client.post("/api/products/P100/prices", json={"effdate": "2024-09-01", "unitprice": 3.5}, headers=admin_headers)
    assert res.status_code == 201

    dup = client.post("/api/products/P100/prices", json={"effdate": "2024-09-01", "unitprice": 4.0}, headers=admin_headers)
    assert dup.status_code == 409

    assert client.get("/api/products/P100", headers=admin_headers).json()["current_price"] == 3.5


def test_duplicate_product_code(client, admin_headers, catalog):
    res = client.post("/api/products", json={"prodcode": "P001"}, headers=admin_headers)
    assert res.status_code == 409


def test_customers(client, admin_headers, catalog):
    res = client.post("/api/customers", json={"custno": "C002", "custname": "Beta Supplies"}, headers=admin_headers)
    assert res.status_code == 201

    body = client.get("/api/customers", headers=admin_headers).json()
    assert body["count"] == 2
    assert [c["custname"] for c in body["data"]] == ["Acme Trading", "Beta Supplies"]

    assert client.post("/api/customers", json={"custno": "C002", "custname": "Again"}, headers=admin_headers).status_code == 409
