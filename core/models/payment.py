from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import date, datetime
from .common import gen_id, today, utcnow

PaymentMethod = Literal["cash", "bank_transfer", "check", "card", "other"]

PAYMENT_METHOD_LABELS = {
    "cash": "Espèces",
    "bank_transfer": "Virement",
    "check": "Chèque",
    "card": "CCP",
    "other": "Autre",
}

class InvoicePayment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    invoice_id: str
    amount_cent: int = Field(gt=0)
    payment_date: date = Field(default_factory=today)
    payment_method: PaymentMethod = "bank_transfer"
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
