from __future__ import annotations
import logging
from typing import List, Optional

from core.errors import ReferencedEntityError
from core.models.client import Client
from core.services.base import TableService
from core.services.permissions import Capability

logger = logging.getLogger(__name__)

REFERENCING_TABLES = ("proforma_invoices", "final_invoices", "delivery_notes")


class ClientService(TableService[Client]):
    table_name = "clients"
    model = Client
    entity_label = "Client"

    def list_clients(self) -> List[Client]:
        return sorted(self._list(), key=lambda c: c.name.casefold())

    def get_by_id(self, client_id: str) -> Optional[Client]:
        return self._get(client_id)

    def require(self, client_id: str) -> Client:
        return self._require(client_id)

    def add_client(self, client: Client) -> Client:
        self.permissions.require(Capability.EDIT)
        self.repo.add(client)
        logger.info("client créé %s (%s)", client.id, client.name)
        return client

    def update_client(self, client: Client) -> Client:
        self.permissions.require(Capability.EDIT)
        self._require(client.id)
        client.touch()
        self.repo.update(client)
        return client

    def is_referenced(self, client_id: str) -> bool:
        return any(
            self.store.table(t).find_one(lambda d: d.get("client_id") == client_id)
            for t in REFERENCING_TABLES
        )

    def delete_client(self, client_id: str) -> None:
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            self._require(client_id)
            if self.is_referenced(client_id):
                raise ReferencedEntityError(
                    "Suppression du client impossible : il est peut-être référencé "
                    "par des factures ou des bons de livraison."
                )
            self.repo.delete(client_id)
        logger.info("client supprimé %s", client_id)
