"""Tests for domain exceptions (error_code, message, details) and SessionIdentity."""

import pytest

from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.domain.enums import Role
from fieldservice.domain.exceptions import (
    AuthenticationException,
    AuthorizationException,
    FieldServiceException,
    NoActiveSessionException,
    ResourceNotFoundException,
    ValidationException,
)


def test_base_exception_default_error_code() -> None:
    """Base FieldServiceException uses class name as error_code when not provided."""
    exc = FieldServiceException("Something failed")
    assert exc.message == "Something failed"
    assert exc.error_code == "FieldServiceException"
    assert exc.details == {}


def test_to_dict_shape() -> None:
    exc = FieldServiceException("Oops", error_code="CUSTOM", details={"key": "value"})
    assert exc.to_dict() == {"error": "CUSTOM", "message": "Oops", "details": {"key": "value"}}


def test_validation_exception() -> None:
    exc = ValidationException("Invalid format", field="action_id")
    assert exc.error_code == "VALIDATION_ERROR"
    assert exc.details == {"field": "action_id"}


def test_authentication_exception() -> None:
    exc = AuthenticationException()
    assert exc.message == "Authentication failed"
    assert exc.error_code == "AUTHENTICATION_ERROR"


def test_authorization_exception_carries_action() -> None:
    exc = AuthorizationException(action="system_settings_manage_features")
    assert exc.error_code == "PERMISSION_DENIED"
    assert exc.details == {"action": "system_settings_manage_features"}


def test_no_active_session_exception() -> None:
    exc = NoActiveSessionException()
    assert exc.message == "No authenticated user or tenant"
    assert exc.error_code == "NO_ACTIVE_SESSION"


def test_resource_not_found_exception() -> None:
    exc = ResourceNotFoundException("feature_flag_template", "nope")
    assert exc.error_code == "RESOURCE_NOT_FOUND"
    assert exc.details == {"resource_type": "feature_flag_template", "resource_id": "nope"}
    assert "nope" in exc.message


@pytest.mark.parametrize(
    ("user_id", "tenant_id", "field"),
    [("", "t1", "user_id"), ("  ", "t1", "user_id"), ("u1", "", "tenant_id")],
)
def test_session_identity_requires_user_and_tenant(user_id, tenant_id, field) -> None:
    with pytest.raises(ValidationException) as exc_info:
        SessionIdentity(user_id=user_id, tenant_id=tenant_id, role=Role.CLIENT)
    assert exc_info.value.details == {"field": field}


def test_session_identity_rejects_raw_role_string() -> None:
    with pytest.raises(ValidationException):
        SessionIdentity(user_id="u1", tenant_id="t1", role="owner")  # type: ignore[arg-type]


def test_session_key() -> None:
    assert SessionIdentity("u1", "t1", Role.OWNER).session_key == ("u1", "t1")
