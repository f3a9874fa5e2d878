from __future__ import annotations

import logging
from typing import Optional, Tuple

from core.errors import BusinessRuleError, InvalidTransition
from core.models.invoice import FinalInvoice, ProformaInvoice
from core.services.invoice_service import InvoiceService
from core.services.permissions import Capability, Permissions
from core.services.proforma_service import ProformaService
from core.services.status import proforma_target

logger = logging.getLogger(__name__)


class ConversionService:
    """Proforma approuvée -> facture finale (et annulation de la conversion)."""

    def __init__(
        self,
        proformas: ProformaService,
        invoices: InvoiceService,
        permissions: Optional[Permissions] = None,
    ) -> None:
        self.proformas = proformas
        self.invoices = invoices
        self.store = proformas.store
        self.permissions = permissions or proformas.permissions

    def convert_to_final(self, proforma_id: str) -> Tuple[ProformaInvoice, FinalInvoice]:
        self.permissions.require(Capability.CONVERT)
        with self.store.transaction():
            p = self.proformas.require(proforma_id)
            proforma_target(p.status, "convert")
            if p.final_invoice_id:
                raise InvalidTransition("la proforma déjà convertie", "convert", p.status)

            inv = self.invoices.insert_invoice(FinalInvoice(
                client_id=p.client_id,
                due_date=p.due_date,
                items=[it.model_copy() for it in p.items],
                notes=p.notes,
                payment_type=p.payment_type,
                bc=p.bc,
                proforma_id=p.id,
                created_by=self.permissions.user_id or p.created_by,
            ))
            p = p.model_copy(update={"final_invoice_id": inv.id})
            p.touch()
            self.proformas.repo.update(p)
        logger.info("proforma %s convertie en facture %s", p.number, inv.number)
        return p, inv

    def undo_conversion(self, proforma_id: str, final_invoice_id: Optional[str] = None) -> ProformaInvoice:
        """Supprime la facture liée et remet la proforma au statut approuvé."""
        self.permissions.require(Capability.CONVERT)
        with self.store.transaction():
            p = self.proformas.require(proforma_id)
            if not p.final_invoice_id:
                raise InvalidTransition("la proforma non convertie", "undo_conversion", p.status)
            if final_invoice_id and final_invoice_id != p.final_invoice_id:
                raise BusinessRuleError(
                    f"La facture {final_invoice_id} n'est pas liée à la proforma {p.number}"
                )
            inv = self.invoices.get_by_id(p.final_invoice_id)
            if inv is not None:
                if self.invoices.has_payments(inv.id):
                    raise BusinessRuleError(
                        f"La facture {inv.number} a des paiements enregistrés : conversion non annulable"
                    )
                self.invoices.remove_invoice(inv)
            p = self.proformas.require(proforma_id).model_copy(
                update={"final_invoice_id": None, "status": "approved"}
            )
            p.touch()
            self.proformas.repo.update(p)
        logger.info("conversion annulée pour la proforma %s", p.number)
        return p
