import pytest

from core.config import Settings
from core.models.client import Client
from core.models.invoice import FinalInvoice, ProformaInvoice
from core.services.workflow_service import WorkflowService
from core.storage.datastore import Datastore
from factories import item


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", backup_enabled=False)


@pytest.fixture
def store(settings):
    return Datastore.from_settings(settings)


@pytest.fixture
def wf(settings, store):
    return WorkflowService(settings, store=store)


@pytest.fixture
def client(wf):
    return wf.clients.add_client(Client(name="Sarl Atlas", taxid="000116001234567", city="Alger"))


@pytest.fixture
def product(wf):
    return wf.catalog.add_product({
        "code": "CAB-01", "name": "Câble 2.5mm", "unit_price": "100", "tax_rate": 19,
        "stock_quantity": 50, "unit": "m",
    })


@pytest.fixture
def make_invoice(wf, client):
    """Facture finale créée directement (total 1000 DA HT sans TVA par défaut)."""
    def _make(items=None, payment_type="bank_transfer", **kw):
        items = items if items is not None else [item(quantity=10, unit_price_cent=10000, tax_rate=0)]
        return wf.invoices.create_invoice(
            FinalInvoice(client_id=client.id, items=items, payment_type=payment_type, **kw)
        )
    return _make


@pytest.fixture
def approved_proforma(wf, client):
    p = wf.proformas.create_proforma(ProformaInvoice(client_id=client.id, items=[item()], bc="BC-17"))
    wf.proformas.send(p.id)
    return wf.proformas.approve(p.id)
