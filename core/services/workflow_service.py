from __future__ import annotations
from typing import Optional

from core.config import Settings, load_settings
from core.models.client import Client
from core.services.catalog_service import CatalogService
from core.services.client_service import ClientService
from core.services.conversion_service import ConversionService
from core.services.delivery_service import DeliveryService
from core.services.document_service import Document, DocumentService
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from core.services.permissions import Permissions
from core.services.proforma_service import ProformaService
from core.services.report_service import ReportService
from core.storage.datastore import Datastore


class WorkflowService:
    """Point d'entrée unique : tous les services autour d'un datastore et d'un utilisateur."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        permissions: Optional[Permissions] = None,
        store: Optional[Datastore] = None,
    ):
        self.settings = settings or load_settings()
        self.permissions = permissions or Permissions.system()
        self.store = store or Datastore.from_settings(self.settings)

        args = (self.store, self.settings, self.permissions)
        self.clients = ClientService(*args)
        self.catalog = CatalogService(*args)
        self.proformas = ProformaService(*args)
        self.invoices = InvoiceService(*args)
        self.payments = PaymentService(*args, invoices=self.invoices)
        self.deliveries = DeliveryService(*args)
        self.conversion = ConversionService(self.proformas, self.invoices, self.permissions)
        self.reports = ReportService(self.clients, self.invoices)
        self.documents = DocumentService(self.settings)

    def client_of(self, doc: Document) -> Optional[Client]:
        return self.clients.get_by_id(doc.client_id)

    def export_pdf(self, doc: Document, out_dir: Optional[str] = None) -> str:
        return self.documents.export_pdf(doc, self.client_of(doc), out_dir)
