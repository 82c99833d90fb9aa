import pytest

from careerboard.service.errors import AuthenticationError, ForbiddenError
from careerboard.service.gates import (
    FORBIDDEN_MESSAGE,
    UNAUTHORIZED_MESSAGE,
    SessionState,
    authentication_gate,
    resolve_state,
    role_gate,
)
from careerboard.service.tokens import Role, SessionPayload


def _payload(role: Role) -> SessionPayload:
    return SessionPayload(identifier="user-1", role=role, expiresAtEpochMillis=10**13)


def test_resolve_state():
    assert resolve_state(None) is SessionState.ANONYMOUS
    assert resolve_state(_payload(Role.USER)) is SessionState.AUTHENTICATED


def test_optional_gate_passes_anonymous_through():
    assert authentication_gate(None, required=False) is None


def test_required_gate_rejects_anonymous():
    with pytest.raises(AuthenticationError) as excinfo:
        authentication_gate(None, required=True)
    assert excinfo.value.status_code == 401
    assert excinfo.value.error_code == "unauthorized"
    assert excinfo.value.message == UNAUTHORIZED_MESSAGE


@pytest.mark.parametrize("required", [True, False])
def test_gate_returns_payload(required):
    payload = _payload(Role.USER)
    assert authentication_gate(payload, required=required) is payload


def test_role_gate_allows_matching_role():
    payload = _payload(Role.ADMIN)
    assert role_gate(payload, Role.ADMIN) is payload


@pytest.mark.parametrize(
    "payload",
    [None, _payload(Role.USER)],
)
def test_role_gate_rejects(payload):
    with pytest.raises(ForbiddenError) as excinfo:
        role_gate(payload, Role.ADMIN)
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == FORBIDDEN_MESSAGE


def test_role_gate_is_exact_not_hierarchical():
    with pytest.raises(ForbiddenError):
        role_gate(_payload(Role.ADMIN), Role.USER)
