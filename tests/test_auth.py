"""Unit tests for the access gate and the ``Principal`` capability object."""

import jwt
import pytest
from fastapi import HTTPException

from src.api.auth import decode_principal
from src.config import settings
from src.domain.entities import Principal
from src.domain.enums import ApprovalStatus, Role
from src.domain.exceptions import PermissionDeniedError
from tests.conftest import make_token


class TestDecodePrincipal:
    def test_valid_token(self):
        principal = decode_principal(make_token("d-42", "driver", "approved"))
        assert principal == Principal("d-42", Role.DRIVER, ApprovalStatus.APPROVED)

    def test_missing_status_means_pending(self):
        token = jwt.encode({"sub": "s-1", "role": "student"}, settings.jwt_secret, algorithm="HS256")
        assert decode_principal(token).approval_status == ApprovalStatus.PENDING

    def test_bad_signature(self):
        with pytest.raises(HTTPException) as exc:
            decode_principal(make_token("d-42", "driver", secret="some-other-service-signing-key-0000"))
        assert exc.value.status_code == 401

    def test_expired(self):
        with pytest.raises(HTTPException) as exc:
            decode_principal(make_token("d-42", "driver", expires_in=-60))
        assert exc.value.status_code == 401

    def test_unknown_role(self):
        with pytest.raises(HTTPException) as exc:
            decode_principal(make_token("a-1", "admin"))
        assert exc.value.detail == "Invalid token payload"

    def test_garbage(self):
        with pytest.raises(HTTPException):
            decode_principal("not-a-jwt")


class TestPrincipalRequire:
    def test_approved_driver_passes(self):
        Principal("d", Role.DRIVER, ApprovalStatus.APPROVED).require(Role.DRIVER)

    def test_wrong_role(self):
        with pytest.raises(PermissionDeniedError, match="Only a driver"):
            Principal("s", Role.STUDENT, ApprovalStatus.APPROVED).require(Role.DRIVER)

    def test_pending_account(self):
        with pytest.raises(PermissionDeniedError, match="not approved"):
            Principal("d", Role.DRIVER, ApprovalStatus.PENDING).require(Role.DRIVER)

    def test_approval_can_be_waived(self):
        Principal("d", Role.DRIVER, ApprovalStatus.REJECTED).require(Role.DRIVER, approved=False)
