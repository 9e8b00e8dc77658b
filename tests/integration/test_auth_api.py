from storefront.auth import service as auth_service
from storefront.auth.models import AuthErrorCode, AuthResponse, Identity


def _ok(uid="u1"):
    return AuthResponse(
        True,
        user={"id": uid, "email": "a@b.com", "displayName": "A B", "role": "user"},
        session={"access_token": "AT"},
    )


def test_login_with_existing_profile_sets_cookie(client, store, monkeypatch):
    store.seed("customers", "u1", {"createdOn": 1})
    monkeypatch.setattr(auth_service, "login", lambda email, password: _ok())

    res = client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "secret1"})
    assert res.status_code == 200
    assert res.json()["decision"] == "allowed"
    assert "sb_access=AT" in res.headers.get("set-cookie", "")


def test_login_without_profile_needs_signup(client, monkeypatch):
    signed_out = []
    monkeypatch.setattr(auth_service, "login", lambda email, password: _ok())
    monkeypatch.setattr(auth_service, "sign_out", signed_out.append)

    res = client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "secret1"})
    assert res.status_code == 409
    assert res.json()["detail"] == auth_service.NO_ACCOUNT_MESSAGE
    assert signed_out == ["AT"]


def test_login_bad_credentials(client, monkeypatch):
    bad = AuthResponse(False, error="Identifiants invalides", error_code=AuthErrorCode.CREDENTIAL_MISMATCH)
    monkeypatch.setattr(auth_service, "login", lambda email, password: bad)
    res = client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "nope"})
    assert res.status_code == 401


def test_signup_creates_profile(client, store, monkeypatch):
    monkeypatch.setattr(auth_service, "signup", lambda email, password: _ok("u5"))
    res = client.post("/api/v1/auth/signup", json={
        "email": "n@b.com", "password": "secret1", "repeatPassword": "secret1",
    })
    assert res.status_code == 200
    assert res.json()["created"] is True
    assert ("customers", "u5") in store.docs


def test_signup_validates_passwords(client):
    mismatch = client.post("/api/v1/auth/signup", json={
        "email": "n@b.com", "password": "secret1", "repeatPassword": "secret2",
    })
    assert mismatch.status_code == 422
    short = client.post("/api/v1/auth/signup", json={
        "email": "n@b.com", "password": "abc", "repeatPassword": "abc",
    })
    assert short.status_code == 422


def test_provider_urls(client, monkeypatch):
    monkeypatch.setattr(auth_service, "_provider_url", lambda provider, redirect_to: f"https://auth.test/{provider}")
    assert client.get("/api/v1/auth/providers/google").json() == {"url": "https://auth.test/google"}
    assert client.get("/api/v1/auth/providers/github").status_code == 404


def test_session_completes_provider_signup(client, store, monkeypatch):
    monkeypatch.setattr(auth_service, "get_identity_from_token", lambda token: Identity("u8", "p@b.com"))
    res = client.post("/api/v1/auth/session", json={"accessToken": "AT", "flow": "signup"})
    assert res.status_code == 200
    assert res.json()["uid"] == "u8"
    assert ("customers", "u8") in store.docs


def test_reset_password(client, monkeypatch):
    sent = []
    monkeypatch.setattr(auth_service, "send_reset_password", lambda email, redirect_to: sent.append(email))
    assert client.post("/api/v1/auth/reset", json={"email": "a@b.com"}).json() == {"ok": True}
    assert sent == ["a@b.com"]


def test_logout_clears_cookie(client, monkeypatch):
    revoked = []
    monkeypatch.setattr(auth_service, "_sign_out", revoked.append)
    res = client.post("/api/v1/auth/logout", headers={"Authorization": "Bearer AT"})
    assert res.status_code == 200
    assert revoked == ["AT"]
    assert "sb_access=" in res.headers.get("set-cookie", "")


def test_login_policy_drives_the_state_projection(client, store, current_user, user_identity, sessions, monkeypatch):
    store.seed("customers", "u1", {"createdOn": 1})
    current_user["identity"] = user_identity
    assert client.get("/api/v1/state/me").json()["user"]["authData"]["uid"] == "u1"
    assert len(sessions) == 1

    bad = AuthResponse(False, error="Identifiants invalides", error_code=AuthErrorCode.CREDENTIAL_MISMATCH)
    monkeypatch.setattr(auth_service, "login", lambda email, password: bad)
    assert client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "nope"}).status_code == 401
    # Dialogue ouvert sans décision favorable: la session n'est plus exposée
    assert client.get("/api/v1/state/me").json() == {"user": None}

    monkeypatch.setattr(auth_service, "login", lambda email, password: _ok())
    assert client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "secret1"}).status_code == 200
    user = client.get("/api/v1/state/me").json()["user"]
    assert user["authData"]["uid"] == "u1"
    assert user["customerData"] == {"createdOn": 1}
    assert len(sessions) == 1


def test_logout_clears_the_session_projection(client, store, current_user, user_identity, sessions, monkeypatch):
    monkeypatch.setattr(auth_service, "sign_out", lambda token: None)
    current_user["identity"] = user_identity
    client.get("/api/v1/state/me")
    assert client.post("/api/v1/auth/logout").json() == {"ok": True}
    current_user["identity"] = None
    assert client.get("/api/v1/state/me").json() == {"user": None}
