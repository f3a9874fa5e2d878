from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import Optional

from core.config import NumberingSettings
from core.errors import StorageError
from core.models.common import utcnow
from core.storage.datastore import Datastore

logger = logging.getLogger(__name__)

INVOICE_SEQUENCE = "invoice_number"


class InvoiceNumbering:
    """
    Numérotation des factures finales (F-0001, F-0002...).

    Les numéros des factures supprimées sont mis de côté dans
    `deleted_invoice_numbers` et réattribués du plus ancien au plus récent
    avant de tirer une nouvelle valeur de la séquence.
    """

    def __init__(self, store: Datastore, settings: Optional[NumberingSettings] = None):
        self.store = store
        self.settings = settings or NumberingSettings()
        self._pattern = re.compile(
            rf"^{re.escape(self.settings.invoice_prefix)}\d{{{self.settings.invoice_padding},}}$"
        )

    def format(self, value: int) -> str:
        return f"{self.settings.invoice_prefix}{value:0{self.settings.invoice_padding}d}"

    def next_number(self) -> str:
        try:
            return self._draw()
        except StorageError as e:
            fallback = f"FIN-{int(time.time() * 1000)}"
            logger.warning("séquence de numérotation indisponible (%s), numéro de secours %s", e, fallback)
            return fallback

    def _draw(self) -> str:
        with self.store.transaction():
            if self.settings.recycle_invoice_numbers:
                pool = self.store.table("deleted_invoice_numbers")
                rows = sorted(pool.list_all(), key=lambda r: r.get("deleted_at") or "")
                if rows:
                    oldest = rows[0]
                    pool.delete(oldest["id"])
                    logger.info("numéro recyclé %s", oldest["number"])
                    return oldest["number"]

            seqs = self.store.table("sequences")
            row = seqs.get_by_id(INVOICE_SEQUENCE) or {"id": INVOICE_SEQUENCE, "value": 0}
            row["value"] = int(row.get("value") or 0) + 1
            seqs.upsert(row)
            return self.format(row["value"])

    def release(self, number: Optional[str]) -> bool:
        """Rend un numéro supprimé réutilisable. Les numéros de secours ne sont pas recyclés."""
        if not number or not self.settings.recycle_invoice_numbers:
            return False
        number = number.strip()
        if not self._pattern.match(number):
            return False
        pool = self.store.table("deleted_invoice_numbers")
        with self.store.transaction():
            if pool.find_one(lambda r: r.get("number") == number):
                return False
            pool.add({"number": number, "deleted_at": utcnow().isoformat()})
        return True


def next_yearly_number(rows, prefix: str, year: Optional[int] = None) -> str:
    """Numéro <prefix>-<année>-NNNN : plus grand numéro existant de l'année + 1."""
    year = year or datetime.now().year
    head = f"{prefix}-{year}-"
    max_n = 0
    for d in rows:
        num = d.get("number") or ""
        if isinstance(num, str) and num.startswith(head):
            tail = num[len(head):]
            if tail.isdigit():
                max_n = max(max_n, int(tail))
    return f"{head}{max_n + 1:04d}"
