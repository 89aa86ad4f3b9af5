from datetime import date

from salesavvy.config import VERSION
from salesavvy.models import Employee, Payment


def _order(client, headers, salesdate, lines):
    return client.post(
        "/api/sales/orders",
        json={"custno": "C001", "empno": "E001", "salesdate": salesdate, "lines": lines},
        headers=headers,
    ).json()["sale"]


def test_summary_totals_and_months(client, db_session, admin_headers, catalog):
    db_session.add(Employee(empno="E002", firstname="Old", sepdate=date(2023, 1, 1)))
    db_session.commit()
    _order(client, admin_headers, "2024-02-10", [{"prodcode": "P001", "quantity": 2}])
    _order(client, admin_headers, "2024-07-01", [{"prodcode": "P002", "quantity": 3}])

    res = client.get("/api/dashboard/summary", params={"year": 2024}, headers=admin_headers)

    assert res.status_code == 200
    body = res.json()
    assert body["total_revenue"] == 35.0
    assert body["sales_count"] == 2
    assert body["sales_count_in_year"] == 2
    assert body["active_employees"] == 1
    months = {m["month"]: m["sales"] for m in body["monthly_sales"]}
    assert len(months) == 12
    assert months["Feb"] == 20.0 and months["Jul"] == 15.0 and months["Jan"] == 0.0
    assert body["employee_performance"][0] == {
        "empno": "E001",
        "name": "Ana Reyes",
        "sales": 35.0,
        "transaction_count": 2,
    }


def test_sale_detail_balance(client, db_session, admin_headers, catalog):
    sale = _order(client, admin_headers, "2024-07-01", [{"prodcode": "P001", "quantity": 4}])
    db_session.add(Payment(orno="OR1", transno=sale["transno"], paydate=date(2024, 7, 5), amount=20.0))
    db_session.commit()

    detail = client.get(f"/api/sales/{sale['transno']}", headers=admin_headers).json()

    assert detail["subtotal"] == 50.0
    assert detail["paid"] == 20.0
    assert detail["balance"] == 30.0


def test_health(client):
    res = client.get("/api/health")

    assert res.status_code == 200
    assert res.json() == {"status": "ok", "database": "ok", "version": VERSION}


def test_security_headers(client):
    res = client.get("/api/health")

    assert res.headers["X-Frame-Options"] == "DENY"
    assert "script-src 'self'" in res.headers["Content-Security-Policy"]


def test_security_logs(client, admin_headers, make_user):
    make_user("rep@salesavvy.test")
    client.post("/api/auth/login", json={"email": "rep@salesavvy.test", "password": "Wrong1234"})

    logs = client.get("/api/admin/security-logs", headers=admin_headers).json()
    types = [log["event_type"] for log in logs["logs"]]
    assert "login_failure" in types
    assert "security_logs_accessed" in types

    stats = client.get("/api/admin/security-stats", headers=admin_headers).json()
    assert stats["stats"]["login_failure"] == 1
