from salesavvy.models import SecurityEvent

ALL_OFF = {
    "add_sales": False,
    "edit_sales": False,
    "delete_sales": False,
    "add_sales_detail": False,
    "edit_sales_detail": False,
    "delete_sales_detail": False,
}


def test_list_users_merges_permissions(client, admin_headers, clerk):
    res = client.get("/api/admin/users", headers=admin_headers)

    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 2
    row = next(u for u in body["data"] if u["email"] == "clerk@salesavvy.test")
    assert row["username"] == "Carl Clerk"
    assert row["permissions"]["add_sales"] is True
    assert row["permissions"]["delete_sales"] is False
    assert [u["index"] for u in body["data"]] == [1, 2]


def test_non_admin_cannot_manage_users(client, viewer_headers):
    assert client.get("/api/admin/users", headers=viewer_headers).status_code == 403
    assert client.put("/api/admin/users/1/permissions", json={"permissions": ALL_OFF}, headers=viewer_headers).status_code == 403


def test_grant_permissions_enables_writes(client, admin_headers, make_user, auth_headers, catalog):
    user = make_user("rep@salesavvy.test")
    headers = auth_headers(user)
    order = {"custno": "C001", "empno": "E001", "lines": [{"prodcode": "P001", "quantity": 1}]}
    assert client.post("/api/sales/orders", json=order, headers=headers).status_code == 403

    res = client.put(
        f"/api/admin/users/{user.id}/permissions",
        json={"permissions": {**ALL_OFF, "add_sales": True, "add_sales_detail": True}},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["user"]["permissions"]["add_sales"] is True

    assert client.post("/api/sales/orders", json=order, headers=headers).status_code == 201


def test_block_user(client, admin_headers, make_user, auth_headers):
    user = make_user("rep@salesavvy.test")

    res = client.put(
        f"/api/admin/users/{user.id}/permissions",
        json={"permissions": ALL_OFF, "is_blocked": True},
        headers=admin_headers,
    )

    assert res.json()["user"]["is_blocked"] is True
    assert client.get("/api/auth/session", headers=auth_headers(user)).status_code == 401


def test_admin_cannot_block_self(client, db_session, make_user, auth_headers):
    admin = make_user("boss@salesavvy.test", is_admin=True)

    res = client.put(
        f"/api/admin/users/{admin.id}/permissions",
        json={"permissions": ALL_OFF, "is_admin": False},
        headers=auth_headers(admin),
    )

    assert res.status_code == 400
    assert db_session.query(SecurityEvent).filter_by(event_type="permissions_update_failure").count() == 1


def test_update_unknown_user(client, admin_headers):
    res = client.put("/api/admin/users/9999/permissions", json={"permissions": ALL_OFF}, headers=admin_headers)
    assert res.status_code == 404


def test_permission_catalog(client, admin_headers):
    res = client.get("/api/admin/permissions", headers=admin_headers)

    codes = [p["code"] for p in res.json()["data"]]
    assert codes == list(ALL_OFF)
