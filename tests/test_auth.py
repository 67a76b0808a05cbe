"""
Admin session: login, cookie, bearer token, logout.
"""
from datetime import timedelta

from app.utils.security import (
    create_oauth_state,
    create_session_token,
    decode_session_token,
    verify_oauth_state,
)

from conftest import ADMIN_CODE


def test_login_sets_http_only_cookie(client):
    response = client.post("/api/auth/login", json={"code": ADMIN_CODE})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    set_cookie = response.headers["set-cookie"].lower()
    assert "gallery_session=" in set_cookie
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert f"max-age={30 * 24 * 60 * 60}" in set_cookie


def test_login_with_wrong_code_is_401(client):
    response = client.post("/api/auth/login", json={"code": "nope"})

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid code"}
    assert "set-cookie" not in response.headers


def test_login_without_code_is_400(client):
    assert client.post("/api/auth/login", json={}).status_code == 400
    assert client.post("/api/auth/login", json={"code": ""}).status_code == 400


def test_check_reflects_session(client):
    assert client.get("/api/auth/check").json() == {"authenticated": False}

    client.post("/api/auth/login", json={"code": ADMIN_CODE})
    assert client.get("/api/auth/check").json() == {"authenticated": True}

    assert client.post("/api/auth/logout").json() == {"success": True}
    client.cookies.clear()
    assert client.get("/api/auth/check").json() == {"authenticated": False}


def test_logout_expires_cookie(admin_client):
    response = admin_client.post("/api/auth/logout")

    assert response.status_code == 200
    set_cookie = response.headers["set-cookie"].lower()
    assert "gallery_session=" in set_cookie
    assert "max-age=0" in set_cookie


def test_bearer_token_is_accepted(client):
    token = create_session_token()

    response = client.get("/api/auth/check", headers={"Authorization": f"Bearer {token}"})
    assert response.json() == {"authenticated": True}


def test_stale_cookie_falls_back_to_bearer_token(client):
    expired = create_session_token(expires_delta=timedelta(seconds=-10))
    headers = {
        "Cookie": f"gallery_session={expired}",
        "Authorization": f"Bearer {create_session_token()}",
    }

    assert client.get("/api/auth/check", headers=headers).json() == {"authenticated": True}
    assert client.post("/api/tags", json={"name": "Night"}, headers=headers).status_code == 201

    headers["Authorization"] = "Bearer not-a-jwt"
    assert client.get("/api/auth/check", headers=headers).json() == {"authenticated": False}


def test_forged_or_expired_tokens_are_rejected(client):
    expired = create_session_token(expires_delta=timedelta(seconds=-10))
    for token in (expired, "not-a-jwt"):
        response = client.get("/api/auth/check", headers={"Authorization": f"Bearer {token}"})
        assert response.json() == {"authenticated": False}


def test_admin_endpoint_without_session_is_401(client):
    response = client.post("/api/tags", json={"name": "Night"})

    assert response.status_code == 401
    assert response.json() == {"detail": "Unauthorized"}


def test_session_token_round_trip():
    payload = decode_session_token(create_session_token())

    assert payload is not None
    assert payload.sub == "admin"


def test_oauth_state_is_not_a_session():
    state = create_oauth_state()

    assert verify_oauth_state(state) is True
    assert decode_session_token(state) is None
    assert verify_oauth_state(create_session_token()) is False
    assert verify_oauth_state(None) is False
