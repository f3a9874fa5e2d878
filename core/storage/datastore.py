from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Union

from core.errors import StorageError
from core.storage.json_repo import JsonRepository

logger = logging.getLogger(__name__)

TABLES = (
    "clients",
    "products",
    "proforma_invoices",
    "final_invoices",
    "invoice_payments",
    "delivery_notes",
    "deleted_invoice_numbers",
    "sequences",
)


class Datastore:
    """
    Ensemble des tables JSON de l'application, protégées par un seul verrou.

    `transaction()` sérialise les écritures multi-tables : tout ce qui est
    exécuté dans le bloc voit un état cohérent, et une exception remet
    chaque table dans l'état d'avant le bloc.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._depth = 0
        self.tables: Dict[str, JsonRepository] = {
            name: JsonRepository(
                self.data_dir / f"{name}.json",
                entity_name=name,
                key="id",
                lock=self._lock,
                backup_enabled=backup_enabled,
                backup_keep=backup_keep,
            )
            for name in TABLES
        }

    @classmethod
    def from_settings(cls, settings) -> "Datastore":
        return cls(settings.data_dir, backup_enabled=settings.backup_enabled, backup_keep=settings.backup_keep)

    def table(self, name: str) -> JsonRepository:
        return self.tables[name]

    @contextmanager
    def transaction(self) -> Iterator["Datastore"]:
        with self._lock:
            # transaction imbriquée: le bloc englobant gère le rollback
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = {name: repo.list_all() for name, repo in self.tables.items()}
            self._depth = 1
            try:
                yield self
            except Exception as exc:
                logger.warning("transaction annulée, restauration des tables")
                failed = []
                for name, rows in snapshot.items():
                    try:
                        self.tables[name].replace_all(rows)
                    except StorageError as e:
                        logger.error("restauration de %s impossible: %s", name, e)
                        failed.append(name)
                if failed:
                    raise StorageError(f"Restauration incomplète: {', '.join(failed)}") from exc
                raise
            finally:
                self._depth = 0
