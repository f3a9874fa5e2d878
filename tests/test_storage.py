import json

import pytest

from core.errors import StorageError
from core.storage.datastore import TABLES, Datastore
from core.storage.json_repo import JsonRepository


def test_datastore_creates_every_table(store):
    for name in TABLES:
        assert (store.data_dir / f"{name}.json").exists()
        assert store.table(name).list_all() == []


def test_repository_crud(tmp_path):
    repo = JsonRepository(tmp_path / "t.json", entity_name="t", backup_enabled=False)
    row = repo.add({"name": "a"})
    assert row["id"]
    with pytest.raises(ValueError):
        repo.add({"id": row["id"]})
    assert repo.update({"id": row["id"], "extra": 1}) == {"id": row["id"], "name": "a", "extra": 1}
    with pytest.raises(KeyError):
        repo.update({"id": "missing"})
    repo.upsert({"id": "b", "name": "b"})
    assert [r["id"] for r in repo.find(lambda r: r.get("name"))] == [row["id"], "b"]
    assert repo.delete("b")
    assert not repo.delete("b")


def test_corrupt_file_is_set_aside(tmp_path):
    path = tmp_path / "t.json"
    path.write_text("{pas du json", encoding="utf-8")
    repo = JsonRepository(path, backup_enabled=False)
    assert repo.list_all() == []
    assert path.with_suffix(".corrupt.json").exists()


def test_backups_are_rotated(tmp_path):
    repo = JsonRepository(tmp_path / "t.json", backup_enabled=True, backup_keep=2)
    for i in range(3):
        (tmp_path / f"t.2026010{i}-000000.bak.json").write_text("[]", encoding="utf-8")
    repo.add({"id": "x"})
    assert len(list(tmp_path.glob("t.*.bak.json"))) == 2


def test_write_failure_raises_storage_error(tmp_path, monkeypatch):
    repo = JsonRepository(tmp_path / "t.json", backup_enabled=False)

    def denied(*args, **kwargs):
        raise PermissionError("lecture seule")

    monkeypatch.setattr("core.storage.json_repo.os.replace", denied)
    with pytest.raises(StorageError):
        repo.add({"id": "x"})
    assert repo.list_all() == []
    assert not list(tmp_path.glob("*.tmp"))


def test_transaction_rolls_back_every_table(store):
    store.table("clients").add({"id": "c1", "name": "A"})
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.table("clients").add({"id": "c2", "name": "B"})
            store.table("sequences").upsert({"id": "invoice_number", "value": 9})
            raise RuntimeError("stop")
    assert [r["id"] for r in store.table("clients").list_all()] == ["c1"]
    assert store.table("sequences").list_all() == []


def test_nested_transaction_rolls_back_with_outer(store):
    with pytest.raises(RuntimeError):
        with store.transaction():
            with store.transaction():
                store.table("clients").add({"id": "c1", "name": "A"})
            raise RuntimeError("stop")
    assert store.table("clients").list_all() == []


def test_data_survives_reopen(settings, store):
    store.table("clients").add({"id": "c1", "name": "A"})
    again = Datastore.from_settings(settings)
    assert again.table("clients").get_by_id("c1") == {"id": "c1", "name": "A"}
    raw = json.loads((settings.data_dir / "clients.json").read_text(encoding="utf-8"))
    assert raw == [{"id": "c1", "name": "A"}]


def test_rollback_restores_remaining_tables_when_one_fails(store, monkeypatch):
    store.table("sequences").upsert({"id": "invoice_number", "value": 3})

    def denied(rows):
        raise StorageError("disque plein")

    monkeypatch.setattr(store.table("clients"), "replace_all", denied)
    with pytest.raises(StorageError) as info:
        with store.transaction():
            store.table("sequences").upsert({"id": "invoice_number", "value": 4})
            store.table("final_invoices").add({"id": "f1"})
            raise RuntimeError("stop")
    assert "clients" in str(info.value)
    assert isinstance(info.value.__cause__, RuntimeError)
    assert store.table("sequences").get_by_id("invoice_number")["value"] == 3
    assert store.table("final_invoices").list_all() == []
