import jwt
import pytest

from library_api.config import Settings
from library_api.errors import TokenExpiredError, TokenInvalidError, TokenMissingError
from library_api.tokens import TokenService

SECRET = "unit-test-secret-key-0123456789abcdef"
T0 = 1_700_000_000


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def test_issue_and_verify_round_trip():
    svc = TokenService(SECRET, clock=FakeClock(T0))
    token = svc.issue("ADM001")
    assert svc.verify(token) == "ADM001"
    payload = jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_exp": False})
    assert payload["admissionNumber"] == "ADM001"
    assert payload["exp"] - payload["iat"] == 3600


def test_token_lifetime_is_one_hour():
    clock = FakeClock(T0)
    svc = TokenService(SECRET, clock=clock)
    token = svc.issue("ADM001")
    clock.now = T0 + 59 * 60
    assert svc.verify(token) == "ADM001"
    clock.now = T0 + 61 * 60
    with pytest.raises(TokenExpiredError):
        svc.verify(token)


@pytest.mark.parametrize("token", [None, "", "   "])
def test_missing_token(token):
    svc = TokenService(SECRET)
    with pytest.raises(TokenMissingError):
        svc.verify(token)


def test_wrong_signature_is_invalid():
    token = TokenService("another-secret-key-0123456789abcdef").issue("ADM001")
    with pytest.raises(TokenInvalidError):
        TokenService(SECRET).verify(token)


@pytest.mark.parametrize("token", ["garbage", "a.b.c", "Bearer x"])
def test_malformed_token_is_invalid(token):
    with pytest.raises(TokenInvalidError):
        TokenService(SECRET).verify(token)


def test_token_without_required_claims_is_invalid():
    token = jwt.encode({"admissionNumber": "ADM001"}, SECRET, algorithm="HS256")
    with pytest.raises(TokenInvalidError):
        TokenService(SECRET).verify(token)


def test_secret_is_required():
    with pytest.raises(ValueError):
        TokenService("")


def test_settings_require_secret(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(RuntimeError):
        Settings()


def test_settings_reject_bad_numbers(monkeypatch):
    monkeypatch.setenv("TOKEN_TTL_SECONDS", "an hour")
    with pytest.raises(RuntimeError):
        Settings()
