# core/services/invoice_service.py
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from core.errors import BusinessRuleError
from core.models.common import today
from core.models.invoice import FinalInvoice
from core.services.base import TableService
from core.services.numbering import InvoiceNumbering
from core.services.status import FINAL_TRANSITIONS, STICKY_STATUSES, check_final_action

logger = logging.getLogger(__name__)


def settle(inv: FinalInvoice, ledger_cent: int) -> FinalInvoice:
    """
    Agrégats payé / dette d'une facture à partir du total du registre.
    - indicateur 'paid' : facture soldée administrativement (payé = total)
    - annulée / avoir : plus rien n'est dû
    """
    if inv.admin_status == "paid":
        paid = inv.total_cent
    else:
        paid = ledger_cent
    if inv.admin_status in STICKY_STATUSES:
        debt = 0
    else:
        debt = max(0, inv.total_cent - paid)
    return inv.model_copy(update={"amount_paid_cent": paid, "client_debt_cent": debt})


class InvoiceService(TableService[FinalInvoice]):
    table_name = "final_invoices"
    model = FinalInvoice
    entity_label = "Facture"

    def __init__(self, store, settings=None, permissions=None):
        super().__init__(store, settings, permissions)
        self.numbering = InvoiceNumbering(store, self.settings.numbering)

    # ----------- lecture -----------
    def list_invoices(self) -> List[FinalInvoice]:
        return sorted(self._list(), key=lambda i: (i.issue_date, i.number or ""), reverse=True)

    def get_by_id(self, invoice_id: str) -> Optional[FinalInvoice]:
        return self._get(invoice_id)

    def require(self, invoice_id: str) -> FinalInvoice:
        return self._require(invoice_id)

    def list_by_client(self, client_id: str) -> List[FinalInvoice]:
        return self._find("client_id", client_id)

    def list_by_proforma(self, proforma_id: str) -> List[FinalInvoice]:
        return self._find("proforma_id", proforma_id)

    # ----------- registre -----------
    def ledger_total(self, invoice_id: str) -> int:
        rows = self.store.table("invoice_payments").find(lambda d: d.get("invoice_id") == invoice_id)
        return sum(int(r.get("amount_cent") or 0) for r in rows)

    def has_payments(self, invoice_id: str) -> bool:
        return self.store.table("invoice_payments").find_one(lambda d: d.get("invoice_id") == invoice_id) is not None

    def refresh_aggregates(self, invoice_id: str) -> FinalInvoice:
        """Recalcule et enregistre payé / dette. À appeler dans la transaction qui modifie le registre."""
        with self.store.transaction():
            inv = settle(self._require(invoice_id), self.ledger_total(invoice_id))
            inv.touch()
            self.repo.update(inv)
        return inv

    # ----------- création / modification -----------
    def _check_client(self, client_id: str) -> None:
        if self.store.table("clients").get_by_id(client_id) is None:
            raise BusinessRuleError(f"Client {client_id} introuvable")

    def insert_invoice(self, inv: FinalInvoice) -> FinalInvoice:
        """Numérote, calcule et enregistre une nouvelle facture (non payée, dette = total)."""
        with self.store.transaction():
            self._check_client(inv.client_id)
            inv = self._recalc(inv).model_copy(update={
                "admin_status": None,
                "payment_date": None,
                "created_by": inv.created_by or self.permissions.user_id,
            })
            inv = settle(inv, 0)
            if not inv.number:
                inv.number = self.numbering.next_number()
            self.repo.add(inv)
        logger.info("facture créée %s (%s), total %s", inv.number, inv.id, inv.total_cent)
        return inv

    def create_invoice(self, inv: FinalInvoice) -> FinalInvoice:
        self.permissions.require(FINAL_TRANSITIONS["edit"].capability)
        return self.insert_invoice(inv)

    def update_invoice(self, inv: FinalInvoice) -> FinalInvoice:
        self.permissions.require(FINAL_TRANSITIONS["edit"].capability)
        with self.store.transaction():
            current = self._require(inv.id)
            check_final_action(current.status, "edit")
            self._check_client(inv.client_id)
            inv = self._recalc(inv).model_copy(update={
                "number": current.number,
                "admin_status": current.admin_status,
                "proforma_id": current.proforma_id,
                "created_at": current.created_at,
                "created_by": current.created_by,
            })
            paid = self.ledger_total(inv.id)
            if inv.total_cent < paid:
                raise BusinessRuleError(
                    f"Le nouveau total ({inv.total_cent}) est inférieur au montant déjà encaissé ({paid})"
                )
            inv = settle(inv, paid)
            inv.touch()
            self.repo.update(inv)
        return inv

    # ----------- changements de statut -----------
    def _apply(self, invoice_id: str, action: str, **changes) -> FinalInvoice:
        self.permissions.require(FINAL_TRANSITIONS[action].capability)
        with self.store.transaction():
            inv = self._require(invoice_id)
            check_final_action(inv.status, action)
            inv = settle(inv.model_copy(update=changes), self.ledger_total(invoice_id))
            inv.touch()
            self.repo.update(inv)
        logger.info("facture %s: %s -> %s", inv.number, action, inv.status)
        return inv

    def mark_paid(
        self, invoice_id: str, payment_date: Optional[date] = None, reference: Optional[str] = None
    ) -> FinalInvoice:
        return self._apply(
            invoice_id, "mark_paid",
            admin_status="paid", payment_date=payment_date or today(), payment_reference=reference,
        )

    def cancel(self, invoice_id: str) -> FinalInvoice:
        return self._apply(invoice_id, "cancel", admin_status="cancelled")

    def credit(self, invoice_id: str) -> FinalInvoice:
        return self._apply(invoice_id, "credit", admin_status="credited")

    def revert(self, invoice_id: str) -> FinalInvoice:
        """Retour à 'non payée' : les paiements enregistrés sont conservés."""
        changes = {"admin_status": None}
        if not self.has_payments(invoice_id):
            changes.update(payment_date=None, payment_reference=None)
        return self._apply(invoice_id, "revert", **changes)

    # ----------- suppression -----------
    def remove_invoice(self, inv: FinalInvoice) -> None:
        """Suppression physique : libère le numéro et délie la proforma d'origine."""
        with self.store.transaction():
            self.repo.delete(inv.id)
            self.numbering.release(inv.number)
            proformas = self.store.table("proforma_invoices")
            for row in proformas.find(lambda d: d.get("final_invoice_id") == inv.id):
                row["final_invoice_id"] = None
                proformas.update(row)
        logger.info("facture supprimée %s", inv.number)

    def delete_invoice(self, invoice_id: str) -> None:
        self.permissions.require(FINAL_TRANSITIONS["delete"].capability)
        with self.store.transaction():
            inv = self._require(invoice_id)
            check_final_action(inv.status, "delete")
            if self.has_payments(invoice_id):
                raise BusinessRuleError("Facture avec paiements enregistrés : suppression impossible")
            self.remove_invoice(inv)
