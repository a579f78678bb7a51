"""认证与访问令牌校验的集成测试。"""

from datetime import timedelta

from fastapi.testclient import TestClient

from app.packages.drive.core.security import create_access_token


def test_login_returns_user_and_token(client: TestClient):
    client.post("/api/v1/users", json={"email": "Bob@Example.com", "password": "secret123"})

    response = client.post("/api/v1/auth/login", json={"email": "bob@example.com", "password": "secret123"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == 200
    assert payload["data"]["user"]["email"] == "bob@example.com"
    assert payload["data"]["token"]
    assert payload["data"]["token_type"] == "bearer"


def test_login_missing_fields(client: TestClient):
    response = client.post("/api/v1/auth/login", json={"email": "bob@example.com"})

    assert response.status_code == 400
    assert response.json()["message"] == "邮箱和密码不能为空"


def test_login_wrong_credentials(client: TestClient, make_user):
    make_user("carol@example.com", "secret123")

    unknown = client.post("/api/v1/auth/login", json={"email": "nobody@example.com", "password": "secret123"})
    wrong = client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "nope"})

    assert unknown.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "密码错误"


def test_protected_route_requires_bearer_token(client: TestClient, make_user):
    _, headers = make_user()
    token = headers["Authorization"].split(" ")[1]

    missing = client.get("/api/v1/files")
    too_many_parts = client.get("/api/v1/files", headers={"Authorization": f"Bearer {token} extra"})
    wrong_prefix = client.get("/api/v1/files", headers={"Authorization": f"Token {token}"})
    bad_signature = client.get("/api/v1/files", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert missing.json()["message"] == "缺少认证信息"
    assert too_many_parts.status_code == 401
    assert wrong_prefix.status_code == 401
    assert wrong_prefix.json()["message"] == "令牌格式错误"
    assert bad_signature.status_code == 401
    assert bad_signature.json()["message"] == "令牌无效"


def test_bearer_prefix_is_case_insensitive(client: TestClient, make_user):
    _, headers = make_user()
    token = headers["Authorization"].split(" ")[1]

    response = client.get("/api/v1/files", headers={"Authorization": f"bearer {token}"})

    assert response.status_code == 200


def test_expired_token_is_rejected(client: TestClient, make_user):
    user_id, _ = make_user()
    expired = create_access_token({"id": user_id, "email": "alice@example.com"}, timedelta(seconds=-10))

    response = client.get("/api/v1/files", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401


def test_token_without_identity_is_rejected(client: TestClient):
    token = create_access_token({"sub": "someone"})

    response = client.get("/api/v1/folders/root", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_invalid_token_blocks_mutation(client: TestClient, make_user):
    _, headers = make_user()

    response = client.post("/api/v1/folders", json={"name": "Docs"}, headers={"Authorization": "Bearer forged"})
    listing = client.get("/api/v1/folders/root", headers=headers)

    assert response.status_code == 401
    assert listing.json()["data"]["subfolders"] == []


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.json()["data"] == {"status": "healthy"}
