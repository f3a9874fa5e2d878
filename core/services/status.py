"""
Machine à états des documents.

Proforma : statut stocké, transitions explicites (table ci-dessous).
Facture finale : seul un indicateur administratif est stocké
(paid / cancelled / credited) ; le statut affiché est toujours dérivé
des montants par `final_status`.
"""
from __future__ import annotations

from typing import Dict, List, NamedTuple, Optional, Tuple

from core.errors import InvalidTransition
from core.services.permissions import Capability, Permissions


class Transition(NamedTuple):
    sources: Tuple[str, ...]
    target: Optional[str]
    capability: Capability


PROFORMA_TRANSITIONS: Dict[str, Transition] = {
    "send": Transition(("draft",), "sent", Capability.EDIT),
    "approve": Transition(("sent",), "approved", Capability.APPROVE),
    "reject": Transition(("sent",), "rejected", Capability.APPROVE),
    "unapprove": Transition(("approved",), "sent", Capability.APPROVE),
    "convert": Transition(("approved",), "approved", Capability.CONVERT),
    "delete": Transition(("draft",), None, Capability.EDIT),
    "edit": Transition(("draft", "sent"), None, Capability.EDIT),
}

FINAL_TRANSITIONS: Dict[str, Transition] = {
    "mark_paid": Transition(("unpaid",), "paid", Capability.EDIT),
    "cancel": Transition(("unpaid",), "cancelled", Capability.EDIT),
    "credit": Transition(("unpaid", "partially_paid", "paid"), "credited", Capability.EDIT),
    "revert": Transition(("paid", "partially_paid", "cancelled"), "unpaid", Capability.EDIT),
    "add_payment": Transition(("unpaid", "partially_paid"), None, Capability.PAYMENTS),
    "delete_payment": Transition(("unpaid", "partially_paid", "paid"), None, Capability.PAYMENTS),
    "delete": Transition(("unpaid",), None, Capability.EDIT),
    "edit": Transition(("unpaid", "paid", "partially_paid", "cancelled"), None, Capability.EDIT),
}

STICKY_STATUSES = ("cancelled", "credited")


def final_status(total_cent: int, amount_paid_cent: int, admin_status: Optional[str]) -> str:
    if admin_status in STICKY_STATUSES:
        return admin_status  # type: ignore[return-value]
    if admin_status == "paid" or amount_paid_cent >= total_cent:
        return "paid"
    if amount_paid_cent > 0:
        return "partially_paid"
    return "unpaid"


def proforma_target(status: str, action: str) -> Optional[str]:
    """Statut d'arrivée d'une action proforma, ou InvalidTransition."""
    tr = PROFORMA_TRANSITIONS.get(action)
    if tr is None or status not in tr.sources:
        raise InvalidTransition("la proforma", action, status)
    return tr.target


def check_final_action(status: str, action: str) -> Transition:
    tr = FINAL_TRANSITIONS.get(action)
    if tr is None or status not in tr.sources:
        raise InvalidTransition("la facture", action, status)
    return tr


def proforma_actions(proforma, permissions: Permissions) -> List[str]:
    """Actions proposées à l'utilisateur pour une proforma."""
    out: List[str] = []
    linked = bool(proforma.final_invoice_id)
    for action, tr in PROFORMA_TRANSITIONS.items():
        if proforma.status not in tr.sources or not permissions.can(tr.capability):
            continue
        if action in ("convert", "unapprove") and linked:
            continue
        out.append(action)
    if linked and permissions.can(Capability.CONVERT):
        out.append("undo_conversion")
    return out


def final_actions(invoice, permissions: Permissions) -> List[str]:
    """Actions proposées à l'utilisateur pour une facture finale."""
    status = invoice.status
    out: List[str] = []
    for action, tr in FINAL_TRANSITIONS.items():
        if status not in tr.sources or not permissions.can(tr.capability):
            continue
        if action == "add_payment" and invoice.client_debt_cent <= 0:
            continue
        if action == "delete" and invoice.amount_paid_cent > 0:
            continue
        if action == "delete_payment" and invoice.amount_paid_cent <= 0:
            continue
        out.append(action)
    return out
