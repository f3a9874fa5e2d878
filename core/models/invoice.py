from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import date
from .common import TimeStamped, gen_id, today

PaymentType = Literal["cash", "cheque", "bank_transfer", "card", "other"]
ProformaStatus = Literal["draft", "sent", "approved", "rejected"]
FinalInvoiceStatus = Literal["unpaid", "paid", "partially_paid", "cancelled", "credited"]
# seul statut réellement stocké sur une facture finale
AdminStatus = Literal["paid", "cancelled", "credited"]

PROFORMA_STATUS_LABELS = {
    "draft": "Brouillon",
    "sent": "Envoyée",
    "approved": "Approuvée",
    "rejected": "Rejetée",
}

FINAL_STATUS_LABELS = {
    "unpaid": "Non payée",
    "paid": "Payée",
    "partially_paid": "Partiellement payée",
    "cancelled": "Annulée",
    "credited": "Avoir",
}


class InvoiceItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    product_id: Optional[str] = None
    name: str = ""
    unit: str = ""
    quantity: int = Field(1, ge=1)
    unit_price_cent: int = Field(0, ge=0)
    tax_rate: float = Field(0.0, ge=0, le=100)
    discount_pct: float = Field(0.0, ge=0, le=100)
    # snapshots, recalculés à chaque écriture
    total_excl_cent: int = 0
    total_tax_cent: int = 0
    total_cent: int = 0


class BaseInvoice(TimeStamped):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    number: Optional[str] = None
    client_id: str
    issue_date: date = Field(default_factory=today)
    due_date: Optional[date] = None
    items: List[InvoiceItem] = Field(default_factory=list)
    notes: str = ""
    payment_type: Optional[PaymentType] = None
    bc: Optional[str] = None  # bon de commande

    subtotal_cent: int = 0
    tax_total_cent: int = 0
    stamp_tax_cent: int = 0
    total_cent: int = 0

    created_by: Optional[str] = None


class ProformaInvoice(BaseInvoice):
    status: ProformaStatus = "draft"
    final_invoice_id: Optional[str] = None


class FinalInvoice(BaseInvoice):
    admin_status: Optional[AdminStatus] = None
    proforma_id: Optional[str] = None
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None

    amount_paid_cent: int = 0
    client_debt_cent: int = 0

    @property
    def status(self) -> FinalInvoiceStatus:
        from core.services.status import final_status
        return final_status(self.total_cent, self.amount_paid_cent, self.admin_status)
