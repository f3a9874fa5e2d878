import pytest

from core.errors import InvalidTransition
from core.models.invoice import FinalInvoice, ProformaInvoice
from core.models.user import UserRole
from core.services.permissions import Permissions
from core.services.status import (
    check_final_action,
    final_actions,
    final_status,
    proforma_actions,
    proforma_target,
)


@pytest.mark.parametrize("total,paid,admin,expected", [
    (1000, 0, None, "unpaid"),
    (1000, 400, None, "partially_paid"),
    (1000, 1000, None, "paid"),
    (1000, 1200, None, "paid"),
    (1000, 0, "paid", "paid"),
    (1000, 1000, "cancelled", "cancelled"),
    (1000, 400, "credited", "credited"),
    (0, 0, None, "paid"),
])
def test_final_status_is_derived(total, paid, admin, expected):
    assert final_status(total, paid, admin) == expected


def test_final_invoice_exposes_derived_status():
    inv = FinalInvoice(client_id="c", total_cent=1000, amount_paid_cent=400)
    assert inv.status == "partially_paid"
    assert "status" not in inv.model_dump()


@pytest.mark.parametrize("status,action,target", [
    ("draft", "send", "sent"),
    ("sent", "approve", "approved"),
    ("sent", "reject", "rejected"),
    ("approved", "unapprove", "sent"),
    ("approved", "convert", "approved"),
])
def test_proforma_transitions(status, action, target):
    assert proforma_target(status, action) == target


@pytest.mark.parametrize("status,action", [
    ("draft", "approve"),
    ("sent", "send"),
    ("rejected", "approve"),
    ("approved", "delete"),
    ("sent", "delete"),
    ("draft", "convert"),
    ("draft", "nonsense"),
])
def test_illegal_proforma_transitions(status, action):
    with pytest.raises(InvalidTransition):
        proforma_target(status, action)


def test_mark_paid_only_from_unpaid():
    check_final_action("unpaid", "mark_paid")
    for status in ("paid", "partially_paid", "cancelled", "credited"):
        with pytest.raises(InvalidTransition):
            check_final_action(status, "mark_paid")


def test_credited_is_terminal():
    for action in ("revert", "add_payment", "edit", "delete", "cancel"):
        with pytest.raises(InvalidTransition):
            check_final_action("credited", action)


def test_proforma_actions_are_gated_by_role():
    p = ProformaInvoice(client_id="c", status="sent")
    admin = Permissions(UserRole.ADMIN)
    accountant = Permissions(UserRole.ACCOUNTANT)
    viewer = Permissions(UserRole.VIEWER)
    assert set(proforma_actions(p, admin)) == {"approve", "reject", "edit"}
    assert proforma_actions(p, accountant) == ["edit"]
    assert proforma_actions(p, viewer) == []


def test_linked_proforma_only_offers_undo():
    p = ProformaInvoice(client_id="c", status="approved", final_invoice_id="f1")
    assert proforma_actions(p, Permissions.system()) == ["undo_conversion"]


def test_final_actions_follow_amounts():
    system = Permissions.system()
    unpaid = FinalInvoice(client_id="c", total_cent=1000, client_debt_cent=1000)
    partial = FinalInvoice(client_id="c", total_cent=1000, amount_paid_cent=400, client_debt_cent=600)
    assert set(final_actions(unpaid, system)) == {"mark_paid", "cancel", "credit", "add_payment", "delete", "edit"}
    assert set(final_actions(partial, system)) == {"credit", "revert", "add_payment", "delete_payment", "edit"}
    salesperson = Permissions(UserRole.SALESPERSON)
    assert final_actions(unpaid, salesperson) == []
