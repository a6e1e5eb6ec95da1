from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from jose import JWTError

from app.auth.middleware import check_permission, verify_token
from app.auth.models import JWTPayload
from app.auth.permissions_manager import PermissionsManager

TOKEN = SimpleNamespace(credentials="token")


def test_role_permissions_from_yaml():
    manager = PermissionsManager()
    nanny = manager.get_permissions_for_roles(["nanny"])
    assert "booking:clock" in nanny
    assert "payroll:export" not in nanny
    assert "booking:confirm" not in manager.get_permissions_for_roles(["parent"])


def test_missing_permissions_file(tmp_path):
    manager = PermissionsManager(str(tmp_path / "missing.yml"))
    assert manager.get_permissions_for_roles(["admin"]) == []


def test_actor_follows_most_privileged_role():
    assert JWTPayload(sub="u", roles=["parent", "supervisor"]).actor == "admin"
    assert JWTPayload(sub="u", roles=["nanny"], nanny_id=4).is_nanny
    assert JWTPayload(sub="u").actor == "parent"


def test_check_permission():
    payload = JWTPayload(sub="u", permissions=["booking:read"])
    check_permission(payload, "booking:read")
    with pytest.raises(HTTPException) as exc:
        check_permission(payload, "booking:delete")
    assert exc.value.status_code == 403


@pytest.mark.asyncio
@patch("app.auth.middleware.jwt_verifier")
async def test_verify_token_for_nanny(mock_verifier):
    mock_verifier.verify_and_decode.return_value = {
        "sub": "kc-1",
        "preferred_username": "sara",
        "nannyId": "1",
        "realm_access": {"roles": ["nanny"]},
    }
    payload = await verify_token(TOKEN)
    assert payload.user_id == "kc-1"
    assert payload.name == "sara"
    assert payload.nanny_id == 1
    assert "booking:clock" in payload.permissions


@pytest.mark.asyncio
@patch("app.auth.middleware.jwt_verifier")
async def test_nanny_token_needs_nanny_id(mock_verifier):
    mock_verifier.verify_and_decode.return_value = {"sub": "kc-1", "realm_access": {"roles": ["nanny"]}}
    with pytest.raises(HTTPException) as exc:
        await verify_token(TOKEN)
    assert exc.value.status_code == 401


@pytest.mark.asyncio
@patch("app.auth.middleware.jwt_verifier")
async def test_invalid_token(mock_verifier):
    mock_verifier.verify_and_decode.side_effect = JWTError("Signature has expired")
    with pytest.raises(HTTPException) as exc:
        await verify_token(TOKEN)
    assert exc.value.status_code == 401
