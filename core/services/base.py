from __future__ import annotations

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.config import Settings
from core.errors import NotFoundError
from core.services.calculator import apply_totals, brackets_from_settings
from core.services.permissions import Permissions
from core.storage.datastore import Datastore

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class TableService(Generic[M]):
    """Socle commun : une table du datastore hydratée en modèles pydantic."""

    table_name: str = ""
    model: Type[M]
    entity_label: str = "élément"

    def __init__(
        self,
        store: Datastore,
        settings: Optional[Settings] = None,
        permissions: Optional[Permissions] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings(data_dir=store.data_dir)
        self.permissions = permissions or Permissions.system()
        self.repo = store.table(self.table_name)

    # ---------- hydratation ---------- #

    def _hydrate(self, d: Dict[str, Any]) -> M:
        return self.model.model_validate(d)

    def _hydrate_list(self, rows: List[Dict[str, Any]]) -> List[M]:
        out: List[M] = []
        for d in rows:
            try:
                out.append(self._hydrate(d))
            except ValidationError as e:
                # On ignore les entrées invalides pour ne pas casser l'UI
                logger.warning("%s %s ignoré: %s", self.table_name, d.get("id"), e)
        return out

    # ---------- lecture ---------- #

    def _list(self) -> List[M]:
        return self._hydrate_list(self.repo.list_all())

    def _get(self, obj_id: str) -> Optional[M]:
        row = self.repo.get_by_id(obj_id)
        if row is None:
            return None
        return self._hydrate(row)

    def _require(self, obj_id: str) -> M:
        obj = self._get(obj_id)
        if obj is None:
            raise NotFoundError(self.entity_label, obj_id)
        return obj

    def _find(self, field: str, value: Any) -> List[M]:
        return self._hydrate_list(self.repo.find(lambda d: d.get(field) == value))

    @property
    def brackets(self):
        return brackets_from_settings(self.settings.stamp_duty)

    def _recalc(self, document: M) -> M:
        return apply_totals(document, self.brackets)
