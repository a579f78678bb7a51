"""用户注册、查询与更新接口的集成测试。"""

from fastapi.testclient import TestClient


def test_register_user_normalizes_email(client: TestClient):
    response = client.post("/api/v1/users", json={"email": "  Dana@Example.COM ", "password": "secret123"})

    assert response.status_code == 201
    payload = response.json()
    assert payload["status"] == 201
    assert payload["data"]["email"] == "dana@example.com"
    assert "password" not in payload["data"]


def test_register_user_duplicate_email(client: TestClient):
    client.post("/api/v1/users", json={"email": "dup@example.com", "password": "secret123"})

    response = client.post("/api/v1/users", json={"email": "DUP@example.com", "password": "other123"})

    assert response.status_code == 409


def test_register_user_requires_fields(client: TestClient):
    response = client.post("/api/v1/users", json={"email": "x@example.com"})

    assert response.status_code == 400


def test_list_and_get_users(client: TestClient, make_user):
    user_id, headers = make_user()
    for index in range(12):
        client.post("/api/v1/users", json={"email": f"user{index}@example.com", "password": "secret123"})

    listing = client.get("/api/v1/users", headers=headers)
    single = client.get(f"/api/v1/users/{user_id}", headers=headers)
    missing = client.get("/api/v1/users/9999", headers=headers)

    assert listing.status_code == 200
    assert len(listing.json()["data"]) == 10
    assert single.json()["data"]["email"] == "alice@example.com"
    assert missing.status_code == 404


def test_users_listing_requires_auth(client: TestClient):
    assert client.get("/api/v1/users").status_code == 401


def test_update_password_and_email(client: TestClient, make_user):
    user_id, headers = make_user()

    response = client.put(
        f"/api/v1/users/{user_id}",
        json={"password": "secret123", "newPassword": "changed456", "email": "Alice2@Example.com"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "alice2@example.com"
    relogin = client.post("/api/v1/auth/login", json={"email": "alice2@example.com", "password": "changed456"})
    assert relogin.status_code == 200


def test_update_user_validation_rules(client: TestClient, make_user):
    user_id, headers = make_user()
    url = f"/api/v1/users/{user_id}"

    nothing_to_change = client.put(url, json={"password": "secret123"}, headers=headers)
    no_password = client.put(url, json={"newPassword": "changed456"}, headers=headers)
    wrong_password = client.put(url, json={"password": "wrong", "newPassword": "changed456"}, headers=headers)
    same_password = client.put(url, json={"password": "secret123", "newPassword": "secret123"}, headers=headers)

    assert nothing_to_change.status_code == 400
    assert no_password.status_code == 400
    assert wrong_password.status_code == 400
    assert wrong_password.json()["message"] == "当前密码错误"
    assert same_password.status_code == 400
    assert same_password.json()["message"] == "新密码不能与当前密码相同"


def test_update_user_email_conflict(client: TestClient, make_user):
    user_id, headers = make_user()
    make_user("taken@example.com")

    response = client.put(
        f"/api/v1/users/{user_id}",
        json={"password": "secret123", "email": "taken@example.com"},
        headers=headers,
    )

    assert response.status_code == 409


def test_update_other_user_is_forbidden(client: TestClient, make_user):
    _, alice_headers = make_user()
    bob_id, _ = make_user("bob@example.com")

    response = client.put(
        f"/api/v1/users/{bob_id}",
        json={"password": "secret123", "newPassword": "hijack999"},
        headers=alice_headers,
    )

    assert response.status_code == 403
