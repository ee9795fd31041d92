from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from app.modules.auth.service import AuthService, clear_auth_cache


class FakeAuth:
    def __init__(self, user=None, error=None):
        self.user = user
        self.error = error
        self.calls = 0

    def get_user(self, jwt):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return SimpleNamespace(user=self.user)


@pytest.fixture(autouse=True)
def empty_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


def make_service(auth):
    return AuthService(SimpleNamespace(auth=auth))


def test_resolves_and_caches_user():
    auth = FakeAuth(user=SimpleNamespace(id="user-a", email="a@example.com", user_metadata=None))
    service = make_service(auth)

    assert service.get_current_user("token-1")["id"] == "user-a"
    assert service.get_current_user("token-1")["user_metadata"] == {}
    assert auth.calls == 1


def test_unknown_token_is_401():
    with pytest.raises(HTTPException) as exc_info:
        make_service(FakeAuth(user=None)).get_current_user("token-2")
    assert exc_info.value.status_code == 401


def test_expired_token_is_401():
    auth = FakeAuth(error=RuntimeError("JWT expired"))
    with pytest.raises(HTTPException) as exc_info:
        make_service(auth).get_current_user("token-3")
    assert exc_info.value.detail == "Invalid or expired token"
