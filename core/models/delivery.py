from __future__ import annotations
from pydantic import ConfigDict, Field
from typing import List, Literal, Optional
from datetime import date
from .common import TimeStamped, gen_id, today
from .invoice import InvoiceItem

DeliveryStatus = Literal["pending", "delivered", "cancelled"]

DELIVERY_STATUS_LABELS = {
    "pending": "En attente de livraison",
    "delivered": "Livrée",
    "cancelled": "Annulé",
}

class DeliveryNote(TimeStamped):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    number: Optional[str] = None
    final_invoice_id: Optional[str] = None
    client_id: str
    issue_date: date = Field(default_factory=today)
    delivery_date: Optional[date] = None
    items: List[InvoiceItem] = Field(default_factory=list)
    notes: str = ""
    status: DeliveryStatus = "pending"

    # transport
    driver_name: Optional[str] = None
    truck_id: Optional[str] = None
    delivery_company: Optional[str] = None
    driver_licence: Optional[str] = None
    driver_tel: Optional[str] = None

    created_by: Optional[str] = None
