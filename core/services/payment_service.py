from __future__ import annotations

import logging
from datetime import date
from typing import List, NamedTuple, Optional

from core.errors import BusinessRuleError, NotFoundError
from core.models.common import today
from core.models.invoice import FinalInvoice
from core.models.payment import InvoicePayment
from core.services.base import TableService
from core.services.invoice_service import InvoiceService
from core.services.permissions import Capability
from core.services.status import check_final_action

logger = logging.getLogger(__name__)


class PaymentResult(NamedTuple):
    payment: InvoicePayment
    invoice: FinalInvoice
    requested_cent: int
    clamped: bool


class PaymentPreview(NamedTuple):
    amount_cent: int
    amount_paid_cent: int
    client_debt_cent: int


class PaymentService(TableService[InvoicePayment]):
    """
    Registre des encaissements d'une facture finale.

    Insertion / suppression d'une ligne et recalcul des agrégats de la
    facture se font dans la même transaction du datastore.
    """

    table_name = "invoice_payments"
    model = InvoicePayment
    entity_label = "Paiement"

    def __init__(self, store, settings=None, permissions=None, invoices: Optional[InvoiceService] = None):
        super().__init__(store, settings, permissions)
        self.invoices = invoices or InvoiceService(store, self.settings, self.permissions)

    def list_payments(self, invoice_id: str) -> List[InvoicePayment]:
        # ordre d'insertion
        return self._find("invoice_id", invoice_id)

    def preview(self, invoice_id: str, amount_cent: int) -> PaymentPreview:
        """Montant payé / reste dû après un paiement envisagé (plafonné à la dette)."""
        inv = self.invoices.require(invoice_id)
        amount = max(0, min(int(amount_cent), inv.client_debt_cent))
        paid = inv.amount_paid_cent + amount
        return PaymentPreview(amount, paid, max(0, inv.total_cent - paid))

    def add_payment(
        self,
        invoice_id: str,
        amount_cent: int,
        payment_date: Optional[date] = None,
        method: str = "bank_transfer",
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        self.permissions.require(Capability.PAYMENTS)
        requested = int(amount_cent)
        if requested <= 0:
            raise BusinessRuleError("Le montant du paiement doit être positif")

        with self.store.transaction():
            inv = self.invoices.require(invoice_id)
            check_final_action(inv.status, "add_payment")
            remaining = max(0, inv.total_cent - self.invoices.ledger_total(invoice_id))
            if remaining <= 0:
                raise BusinessRuleError(f"La facture {inv.number} ne présente plus de dette")

            amount = min(requested, remaining)
            clamped = amount < requested
            if clamped:
                logger.warning(
                    "paiement sur %s plafonné à la dette restante: %s -> %s", inv.number, requested, amount
                )
            payment = InvoicePayment(
                invoice_id=invoice_id,
                amount_cent=amount,
                payment_date=payment_date or today(),
                payment_method=method,
                reference=reference or None,
                notes=notes or None,
            )
            self.repo.add(payment)
            inv = self.invoices.refresh_aggregates(invoice_id)

        logger.info("paiement %s enregistré sur %s: %s", payment.id, inv.number, amount)
        return PaymentResult(payment, inv, requested, clamped)

    def delete_payment(self, payment_id: str, invoice_id: str) -> FinalInvoice:
        self.permissions.require(Capability.PAYMENTS)
        with self.store.transaction():
            row = self.repo.get_by_id(payment_id)
            if row is None or row.get("invoice_id") != invoice_id:
                raise NotFoundError(self.entity_label, payment_id)
            check_final_action(self.invoices.require(invoice_id).status, "delete_payment")
            self.repo.delete(payment_id)
            inv = self.invoices.refresh_aggregates(invoice_id)
        logger.info("paiement %s supprimé de %s", payment_id, inv.number)
        return inv
