from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

from core.errors import StorageError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def _json_default(o: Any) -> Any:
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


def _as_row(item: Union[BaseModel, Mapping[str, Any]]) -> Row:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    return dict(item)


class JsonRepository:
    """
    Une table = un fichier JSON contenant une liste de lignes (dict).

    Le verrou peut être partagé entre plusieurs tables : c'est ce que fait
    `Datastore` pour que ses transactions couvrent toutes les tables.
    Chaque écriture passe par un fichier temporaire puis `os.replace`, et
    garde les `backup_keep` dernières versions en `<table>.<horodatage>.bak.json`.
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        entity_name: str = "entity",
        key: str = "id",
        *,
        lock: Optional[threading.RLock] = None,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.filepath = Path(filepath)
        self.entity_name = entity_name
        self.key = key
        self._lock = lock or threading.RLock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        if not self.filepath.exists():
            self._save([])

    # --- fichier ---

    def _load(self) -> List[Row]:
        try:
            with self.filepath.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except json.JSONDecodeError:
            aside = self.filepath.with_suffix(".corrupt.json")
            logger.error("%s illisible, mis de côté dans %s", self.filepath.name, aside.name)
            try:
                shutil.copy2(self.filepath, aside)
            except OSError as e:
                raise StorageError(f"Lecture de {self.filepath} impossible: {e}") from e
            return []
        except OSError as e:
            raise StorageError(f"Lecture de {self.filepath} impossible: {e}") from e
        return data if isinstance(data, list) else []

    def _backup(self) -> None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        try:
            shutil.copy2(self.filepath, self.filepath.with_suffix(f".{stamp}.bak.json"))
        except OSError as e:
            logger.warning("backup de %s impossible: %s", self.filepath.name, e)
        backups = sorted(self.filepath.parent.glob(f"{self.filepath.stem}.*.bak.json"))
        for old in backups[: max(0, len(backups) - self.backup_keep)]:
            try:
                old.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("backup %s non supprimé: %s", old.name, e)

    def _save(self, rows: Iterable[Mapping[str, Any]]) -> None:
        dump = json.dumps(list(rows), ensure_ascii=False, indent=2, default=_json_default)
        with self._lock:
            if self.filepath.exists():
                try:
                    if self.filepath.read_text(encoding="utf-8") == dump:
                        return
                except OSError:
                    pass
                if self.backup_enabled and self.backup_keep:
                    self._backup()

            fd, tmp = tempfile.mkstemp(dir=self.filepath.parent, prefix=f".{self.filepath.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(dump)
                os.replace(tmp, self.filepath)
            except OSError as e:
                Path(tmp).unlink(missing_ok=True)
                raise StorageError(f"Écriture de {self.filepath} impossible: {e}") from e

    def _index_of(self, rows: List[Row], key_value: Any) -> int:
        for i, row in enumerate(rows):
            if str(row.get(self.key)) == str(key_value):
                return i
        return -1

    # --- CRUD ---

    def list_all(self) -> List[Row]:
        with self._lock:
            return self._load()

    def get_by_id(self, obj_id: Any) -> Optional[Row]:
        rows = self.list_all()
        idx = self._index_of(rows, obj_id)
        return rows[idx] if idx >= 0 else None

    def add(self, item: Union[BaseModel, Mapping[str, Any]]) -> Row:
        record = _as_row(item)
        if not record.get(self.key):
            record[self.key] = uuid4().hex
        with self._lock:
            rows = self._load()
            if self._index_of(rows, record[self.key]) >= 0:
                raise ValueError(f"{self.entity_name} {self.key}={record[self.key]} existe déjà")
            rows.append(record)
            self._save(rows)
        return record

    def update(self, item: Union[BaseModel, Mapping[str, Any]]) -> Row:
        """Fusionne `item` dans la ligne existante de même clé (KeyError si absente)."""
        record = _as_row(item)
        key_value = record.get(self.key)
        if not key_value:
            raise ValueError(f"{self.entity_name} sans '{self.key}' : mise à jour impossible")
        with self._lock:
            rows = self._load()
            idx = self._index_of(rows, key_value)
            if idx < 0:
                raise KeyError(f"{self.entity_name} {self.key}={key_value} introuvable")
            rows[idx] = {**rows[idx], **record}
            self._save(rows)
            return rows[idx]

    def upsert(self, item: Union[BaseModel, Mapping[str, Any]]) -> Row:
        with self._lock:
            try:
                return self.update(item)
            except KeyError:
                return self.add(item)

    def delete(self, obj_id: Any) -> bool:
        with self._lock:
            rows = self._load()
            idx = self._index_of(rows, obj_id)
            if idx < 0:
                return False
            rows.pop(idx)
            self._save(rows)
        return True

    def replace_all(self, rows: Iterable[Mapping[str, Any]]) -> None:
        self._save(rows)

    def find(self, predicate: Callable[[Row], bool]) -> List[Row]:
        return [r for r in self.list_all() if predicate(r)]

    def find_one(self, predicate: Callable[[Row], bool]) -> Optional[Row]:
        return next((r for r in self.list_all() if predicate(r)), None)
