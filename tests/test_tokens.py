import time

import jwt
import pytest

from sweetshop.auth import create_access_token, decode_access_token, principal_from_token
from sweetshop.errors import InvalidTokenError, TokenExpiredError, TokenNotYetValidError


class FakeUser:
    id = 7
    username = "tok"
    role = "STAFF"


def test_round_trip(settings):
    token = create_access_token(FakeUser(), settings)
    principal = principal_from_token(token, settings)
    assert principal == (7, "tok", "STAFF")


def test_expiry_defaults_to_settings(settings):
    token = create_access_token(FakeUser(), settings)
    claims = decode_access_token(token, settings)
    assert claims["exp"] - claims["iat"] == settings.jwt_expires_in


def test_expired(settings):
    token = create_access_token(FakeUser(), settings, expires_delta=-10)
    with pytest.raises(TokenExpiredError) as exc:
        decode_access_token(token, settings)
    assert exc.value.code == "token_expired"


def test_not_yet_valid(settings):
    now = int(time.time())
    token = jwt.encode(
        {"sub": "7", "username": "tok", "role": "STAFF", "nbf": now + 3600, "exp": now + 7200},
        settings.jwt_secret,
        algorithm="HS256",
    )
    with pytest.raises(TokenNotYetValidError):
        decode_access_token(token, settings)


def test_wrong_signature(settings):
    token = create_access_token(FakeUser(), settings._replace(jwt_secret="someone-else"))
    with pytest.raises(InvalidTokenError) as exc:
        decode_access_token(token, settings)
    assert exc.value.message == "Invalid token signature"


def test_garbage(settings):
    with pytest.raises(InvalidTokenError) as exc:
        decode_access_token("not-a-token", settings)
    assert exc.value.message == "Invalid token"


def test_http_layer_reports_kind(client, settings, staff_user):
    expired = create_access_token(staff_user, settings, expires_delta=-10)
    r = client.get("/auth/profile", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 401
    assert r.json()["code"] == "token_expired"

    r = client.get("/auth/profile", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["code"] == "token_invalid"

    r = client.get("/auth/profile")
    assert r.status_code == 401
    assert r.json()["error"] == "Access token required"
