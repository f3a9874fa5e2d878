import pytest

from core.errors import PermissionDenied
from core.models.client import Client
from core.models.user import User, UserRole
from core.services.permissions import Capability, Permissions, has_capability
from core.services.workflow_service import WorkflowService


def test_has_capability():
    assert has_capability(UserRole.ADMIN, [UserRole.ADMIN])
    assert has_capability("accountant", [UserRole.ADMIN, UserRole.ACCOUNTANT])
    assert not has_capability(UserRole.VIEWER, [UserRole.ADMIN])
    assert not has_capability(None, [UserRole.ADMIN])


def test_default_policy():
    accountant = Permissions(UserRole.ACCOUNTANT)
    assert accountant.can(Capability.EDIT)
    assert accountant.can(Capability.PAYMENTS)
    assert not accountant.can(Capability.APPROVE)
    assert not accountant.can(Capability.CONVERT)


def test_injected_checker_is_used():
    calls = []

    def checker(role, allowed):
        calls.append(role)
        return True

    p = Permissions(UserRole.VIEWER, checker=checker)
    assert p.can(Capability.CONVERT)
    assert calls == [UserRole.VIEWER]


def test_services_enforce_permissions(settings, store):
    viewer = WorkflowService(settings, Permissions(UserRole.VIEWER, user_id="u1"), store=store)
    with pytest.raises(PermissionDenied) as exc:
        viewer.clients.add_client(Client(name="X"))
    assert exc.value.capability == "edit"
    assert exc.value.role == "viewer"
    assert viewer.clients.list_clients() == []


def test_accountant_cannot_approve(settings, store, approved_proforma):
    accountant = WorkflowService(settings, Permissions(UserRole.ACCOUNTANT), store=store)
    with pytest.raises(PermissionDenied):
        accountant.conversion.convert_to_final(approved_proforma.id)
    assert accountant.invoices.list_invoices() == []


def test_permissions_for_user():
    active = Permissions.for_user(User(id="u1", role=UserRole.ACCOUNTANT))
    assert active.user_id == "u1"
    assert active.can(Capability.PAYMENTS)
    disabled = Permissions.for_user(User(id="u2", role=UserRole.ADMIN, active=False))
    assert not disabled.can(Capability.EDIT)
    with pytest.raises(PermissionDenied):
        disabled.require(Capability.EDIT)
