from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from core.errors import BusinessRuleError, InvalidTransition
from core.models.common import today
from core.models.delivery import DeliveryNote
from core.models.invoice import FinalInvoice
from core.services.base import TableService
from core.services.calculator import compute_item
from core.services.numbering import next_yearly_number
from core.services.permissions import Capability

logger = logging.getLogger(__name__)


class DeliveryService(TableService[DeliveryNote]):
    """Bons de livraison : en attente -> livré | annulé. Indépendants du paiement."""

    table_name = "delivery_notes"
    model = DeliveryNote
    entity_label = "Bon de livraison"

    def list_notes(self) -> List[DeliveryNote]:
        return sorted(self._list(), key=lambda n: (n.issue_date, n.number or ""), reverse=True)

    def get_by_id(self, note_id: str) -> Optional[DeliveryNote]:
        return self._get(note_id)

    def list_by_invoice(self, invoice_id: str) -> List[DeliveryNote]:
        return self._find("final_invoice_id", invoice_id)

    def _pending(self, note_id: str, action: str) -> DeliveryNote:
        note = self._require(note_id)
        if note.status != "pending":
            raise InvalidTransition("le bon de livraison", action, note.status)
        return note

    def create_note(self, note: DeliveryNote) -> DeliveryNote:
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            if self.store.table("clients").get_by_id(note.client_id) is None:
                raise BusinessRuleError(f"Client {note.client_id} introuvable")
            note = note.model_copy(update={
                "status": "pending",
                "items": [compute_item(it) for it in note.items],
                "created_by": note.created_by or self.permissions.user_id,
            })
            if not note.number:
                note.number = next_yearly_number(self.repo.list_all(), self.settings.numbering.delivery_prefix)
            self.repo.add(note)
        logger.info("bon de livraison créé %s", note.number)
        return note

    def create_from_invoice(self, invoice_id: str, **transport) -> DeliveryNote:
        """Bon de livraison reprenant le client et les lignes d'une facture finale."""
        row = self.store.table("final_invoices").get_by_id(invoice_id)
        if row is None:
            raise BusinessRuleError(f"Facture {invoice_id} introuvable")
        inv = FinalInvoice.model_validate(row)
        return self.create_note(DeliveryNote(
            final_invoice_id=inv.id,
            client_id=inv.client_id,
            items=[it.model_copy() for it in inv.items],
            notes=f"Livraison pour la facture {inv.number}",
            **transport,
        ))

    def update_note(self, note: DeliveryNote) -> DeliveryNote:
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            current = self._pending(note.id, "edit")
            note = note.model_copy(update={
                "number": current.number,
                "status": current.status,
                "items": [compute_item(it) for it in note.items],
                "created_at": current.created_at,
                "created_by": current.created_by,
            })
            note.touch()
            self.repo.update(note)
        return note

    def mark_delivered(self, note_id: str, delivery_date: Optional[date] = None) -> DeliveryNote:
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            note = self._pending(note_id, "mark_delivered")
            note = note.model_copy(update={"status": "delivered", "delivery_date": delivery_date or today()})
            note.touch()
            self.repo.update(note)
        logger.info("bon de livraison %s livré", note.number)
        return note

    def cancel(self, note_id: str) -> DeliveryNote:
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            note = self._pending(note_id, "cancel").model_copy(update={"status": "cancelled"})
            note.touch()
            self.repo.update(note)
        return note

    def delete_note(self, note_id: str) -> None:
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            self._pending(note_id, "delete")
            self.repo.delete(note_id)
