from __future__ import annotations

import logging
from typing import List, Optional

from core.errors import BusinessRuleError, InvalidTransition
from core.models.invoice import ProformaInvoice
from core.services.base import TableService
from core.services.numbering import next_yearly_number
from core.services.permissions import Capability
from core.services.status import PROFORMA_TRANSITIONS, proforma_target

logger = logging.getLogger(__name__)


class ProformaService(TableService[ProformaInvoice]):
    table_name = "proforma_invoices"
    model = ProformaInvoice
    entity_label = "Proforma"

    # ----------- lecture -----------
    def list_proformas(self) -> List[ProformaInvoice]:
        return sorted(self._list(), key=lambda p: (p.issue_date, p.number or ""), reverse=True)

    def get_by_id(self, proforma_id: str) -> Optional[ProformaInvoice]:
        return self._get(proforma_id)

    def require(self, proforma_id: str) -> ProformaInvoice:
        return self._require(proforma_id)

    def list_by_client(self, client_id: str) -> List[ProformaInvoice]:
        return self._find("client_id", client_id)

    # ----------- écriture -----------
    def _check_client(self, client_id: str) -> None:
        if self.store.table("clients").get_by_id(client_id) is None:
            raise BusinessRuleError(f"Client {client_id} introuvable")

    def create_proforma(self, p: ProformaInvoice) -> ProformaInvoice:
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            self._check_client(p.client_id)
            p = self._recalc(p).model_copy(update={
                "status": "draft",
                "final_invoice_id": None,
                "created_by": p.created_by or self.permissions.user_id,
            })
            if not p.number:
                p.number = next_yearly_number(self.repo.list_all(), self.settings.numbering.proforma_prefix)
            self.repo.add(p)
        logger.info("proforma créée %s (%s)", p.number, p.id)
        return p

    def update_proforma(self, p: ProformaInvoice) -> ProformaInvoice:
        """Modification du contenu (lignes, notes, règlement) : brouillon ou envoyée uniquement."""
        with self.store.transaction():
            current = self._require(p.id)
            tr = PROFORMA_TRANSITIONS["edit"]
            if current.status not in tr.sources:
                raise InvalidTransition("la proforma", "edit", current.status)
            self.permissions.require(tr.capability)
            self._check_client(p.client_id)
            p = self._recalc(p).model_copy(update={
                "status": current.status,
                "final_invoice_id": current.final_invoice_id,
                "number": current.number,
                "created_at": current.created_at,
                "created_by": current.created_by,
            })
            p.touch()
            self.repo.update(p)
        return p

    def _transition(self, proforma_id: str, action: str) -> ProformaInvoice:
        self.permissions.require(PROFORMA_TRANSITIONS[action].capability)
        with self.store.transaction():
            p = self._require(proforma_id)
            if action == "unapprove" and p.final_invoice_id:
                # annuler d'abord la conversion
                raise InvalidTransition("la proforma convertie", action, p.status)
            target = proforma_target(p.status, action)
            p = p.model_copy(update={"status": target})
            p.touch()
            self.repo.update(p)
        logger.info("proforma %s: %s -> %s", p.number, action, target)
        return p

    def send(self, proforma_id: str) -> ProformaInvoice:
        return self._transition(proforma_id, "send")

    def approve(self, proforma_id: str) -> ProformaInvoice:
        return self._transition(proforma_id, "approve")

    def reject(self, proforma_id: str) -> ProformaInvoice:
        return self._transition(proforma_id, "reject")

    def unapprove(self, proforma_id: str) -> ProformaInvoice:
        return self._transition(proforma_id, "unapprove")

    def delete_proforma(self, proforma_id: str) -> None:
        self.permissions.require(PROFORMA_TRANSITIONS["delete"].capability)
        with self.store.transaction():
            p = self._require(proforma_id)
            proforma_target(p.status, "delete")
            self.repo.delete(proforma_id)
        logger.info("proforma supprimée %s", p.number)
