def _login(client):
    response = client.post("/auth/login", json={"identifier": "alice", "password": "password123"})
    return response.json()["accessToken"]


def test_me_returns_profile(client, register_user):
    register_user()
    token = _login(client)

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["user"]["username"] == "alice"
    assert data["user"]["email"] == "alice@x.com"
    assert "password_hash" not in data["user"]


def test_me_without_token(client):
    response = client.get("/me")

    assert response.status_code == 401
    assert response.json()["ok"] is False
    assert response.headers["www-authenticate"] == "Bearer"


def test_me_with_invalid_token(client):
    response = client.get("/me", headers={"Authorization": "Bearer not.a.token"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"


def test_me_with_non_bearer_scheme(client, register_user):
    register_user()
    token = _login(client)

    response = client.get("/me", headers={"Authorization": f"Basic {token}"})

    assert response.status_code == 401


def test_me_for_deleted_user(client, test_app):
    token = test_app.state.issuer.issue("no-such-user")

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 404
    assert response.json() == {"ok": False, "message": "User not found"}
