from datetime import datetime

import pytest

from core.config import NumberingSettings
from core.errors import StorageError
from core.services.numbering import InvoiceNumbering, next_yearly_number


def test_sequence_is_monotonic(store):
    n = InvoiceNumbering(store)
    assert [n.next_number() for _ in range(3)] == ["F-0001", "F-0002", "F-0003"]


def test_deleted_numbers_are_recycled_oldest_first(store):
    n = InvoiceNumbering(store)
    for _ in range(4):
        n.next_number()
    assert n.release("F-0003")
    assert n.release("F-0001")
    assert not n.release("F-0001")
    assert n.next_number() == "F-0003"
    assert n.next_number() == "F-0001"
    assert n.next_number() == "F-0005"


def test_foreign_and_fallback_numbers_are_not_recycled(store):
    n = InvoiceNumbering(store)
    assert not n.release("FIN-1712345678901")
    assert not n.release("")
    assert not n.release(None)
    assert store.table("deleted_invoice_numbers").list_all() == []


def test_recycling_can_be_disabled(store):
    n = InvoiceNumbering(store, NumberingSettings(recycle_invoice_numbers=False))
    first = n.next_number()
    assert not n.release(first)
    assert n.next_number() == "F-0002"


def test_custom_prefix_and_padding(store):
    n = InvoiceNumbering(store, NumberingSettings(invoice_prefix="FA", invoice_padding=6))
    assert n.next_number() == "FA000001"


def test_fallback_when_sequence_fails(store, monkeypatch, caplog):
    def broken(row):
        raise StorageError("disque plein")

    monkeypatch.setattr(store.table("sequences"), "upsert", broken)
    number = InvoiceNumbering(store).next_number()
    assert number.startswith("FIN-")
    assert number[4:].isdigit()
    assert "numéro de secours" in caplog.text


def test_invoice_numbers_via_service(wf, make_invoice):
    a = make_invoice()
    b = make_invoice()
    assert (a.number, b.number) == ("F-0001", "F-0002")
    wf.invoices.delete_invoice(a.id)
    assert make_invoice().number == "F-0001"


def test_yearly_numbers():
    rows = [{"number": "P-2026-0007"}, {"number": "P-2025-0099"}, {"number": None}, {"number": "P-2026-x"}]
    assert next_yearly_number(rows, "P", 2026) == "P-2026-0008"
    assert next_yearly_number(rows, "P", 2027) == "P-2027-0001"
    assert next_yearly_number([], "BL").startswith(f"BL-{datetime.now().year}-")
