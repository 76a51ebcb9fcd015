from datetime import timedelta
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from monsterden import config
from monsterden.auth import (
    create_access_token,
    decode_token,
    get_active_user,
    get_current_user,
)


def test_token_round_trip():
    token = create_access_token("alice")
    assert decode_token(token) == "alice"


def test_expired_token_is_rejected():
    token = create_access_token("alice", expires_delta=timedelta(seconds=-1))
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token)
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Token expired"


def test_garbage_token_decodes_to_none():
    assert decode_token("not-a-jwt") is None


def _request(overrides=None):
    return SimpleNamespace(app=SimpleNamespace(dependency_overrides=overrides or {}))


async def test_active_user_from_token():
    token = create_access_token("alice")
    assert await get_active_user(_request(), token) == "alice"


async def test_active_user_honours_override():
    request = _request({get_current_user: lambda: "bob"})
    assert await get_active_user(request, None) == "bob"


async def test_active_user_is_anonymous_when_auth_disabled(monkeypatch):
    monkeypatch.setattr(config, "disable_auth", True)
    assert await get_active_user(_request(), None) is None
