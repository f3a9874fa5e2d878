from datetime import date

import pytest

from core.errors import BusinessRuleError, InvalidTransition, PermissionDenied
from core.models.delivery import DeliveryNote
from core.models.user import UserRole
from core.services.delivery_service import DeliveryService
from core.services.permissions import Permissions
from factories import item


def test_create_from_invoice(wf, make_invoice):
    inv = make_invoice()
    note = wf.deliveries.create_from_invoice(inv.id, driver_name="Karim", truck_id="12345-116-16")
    assert note.status == "pending"
    assert note.client_id == inv.client_id
    assert note.final_invoice_id == inv.id
    assert note.notes == f"Livraison pour la facture {inv.number}"
    assert note.number.startswith("BL-")
    assert [it.name for it in note.items] == [it.name for it in inv.items]
    assert wf.deliveries.list_by_invoice(inv.id) == [note]


def test_create_requires_client(wf):
    with pytest.raises(BusinessRuleError):
        wf.deliveries.create_note(DeliveryNote(client_id="inconnu"))


def test_mark_delivered(wf, client):
    note = wf.deliveries.create_note(DeliveryNote(client_id=client.id, items=[item()]))
    note = wf.deliveries.mark_delivered(note.id, date(2026, 6, 1))
    assert note.status == "delivered"
    assert note.delivery_date == date(2026, 6, 1)
    with pytest.raises(InvalidTransition):
        wf.deliveries.cancel(note.id)
    with pytest.raises(InvalidTransition):
        wf.deliveries.delete_note(note.id)


def test_update_and_cancel_pending(wf, client):
    note = wf.deliveries.create_note(DeliveryNote(client_id=client.id))
    out = wf.deliveries.update_note(note.model_copy(update={"driver_tel": "0550 00 00 00", "status": "delivered"}))
    assert out.status == "pending"
    assert out.driver_tel == "0550 00 00 00"
    assert wf.deliveries.cancel(note.id).status == "cancelled"
    with pytest.raises(InvalidTransition):
        wf.deliveries.update_note(out)


def test_delivery_is_independent_of_payment(wf, make_invoice):
    inv = make_invoice()
    note = wf.deliveries.create_from_invoice(inv.id)
    wf.deliveries.mark_delivered(note.id)
    assert wf.invoices.require(inv.id).status == "unpaid"


def test_delete_pending_note(wf, client):
    note = wf.deliveries.create_note(DeliveryNote(client_id=client.id))
    wf.deliveries.delete_note(note.id)
    assert wf.deliveries.list_notes() == []


def test_viewer_cannot_mark_delivered(store, settings, client, wf):
    note = wf.deliveries.create_note(DeliveryNote(client_id=client.id))
    viewer = DeliveryService(store, settings, Permissions(UserRole.VIEWER))
    with pytest.raises(PermissionDenied):
        viewer.mark_delivered(note.id)
    assert wf.deliveries.get_by_id(note.id).status == "pending"
