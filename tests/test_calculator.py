import pytest

from core.config import StampBracket
from core.services.calculator import (
    apply_totals,
    brackets_from_settings,
    compute_item,
    compute_totals,
    line_totals,
    stamp_tax_cent,
)
from core.models.invoice import ProformaInvoice
from factories import item


def test_line_ten_times_hundred_at_19_percent():
    t = line_totals(10, 10000, 19)
    assert t.total_excl_cent == 100000
    assert t.total_tax_cent == 19000
    assert t.total_cent == 119000


@pytest.mark.parametrize("qty,price,rate,discount", [
    (1, 999, 19, 0),
    (3, 12345, 9, 12.5),
    (7, 1, 19, 33),
    (250, 4799, 0, 100),
    (13, 100001, 7.5, 2.25),
])
def test_line_total_is_excl_plus_tax(qty, price, rate, discount):
    t = line_totals(qty, price, rate, discount)
    assert t.total_cent == t.total_excl_cent + t.total_tax_cent
    assert abs(t.total_tax_cent - t.total_excl_cent * rate / 100) <= 1
    assert abs(t.total_excl_cent - qty * price * (1 - discount / 100)) <= 1


def test_discount_is_a_percentage():
    it = compute_item(item(quantity=2, unit_price_cent=5000, tax_rate=0, discount_pct=10))
    assert it.total_excl_cent == 9000
    _, totals = compute_totals([it], None)
    assert totals.discount_total_cent == 1000


@pytest.mark.parametrize("payment_type", [None, "bank_transfer", "cheque", "card", "other"])
def test_no_stamp_duty_unless_cash(payment_type):
    assert stamp_tax_cent(payment_type, 50_000_000) == 0


@pytest.mark.parametrize("subtotal_cent,expected", [
    (10_000_100, 200_002),   # 100001 DA -> 2 %
    (10_000_000, 150_000),   # 100000 DA : borne exclusive -> 1,5 %
    (3_000_100, 45_002),     # 30001 DA -> 1,5 %
    (3_000_000, 30_000),     # 30000 DA -> 1 %
    (30_001, 300),           # 300,01 DA -> 1 %
    (30_000, 0),             # 300 DA exactement -> rien
    (0, 0),
])
def test_stamp_duty_brackets_for_cash(subtotal_cent, expected):
    assert stamp_tax_cent("cash", subtotal_cent) == expected


def test_thousand_dinar_invoice_totals():
    _, totals = compute_totals([item(quantity=10, unit_price_cent=10000, tax_rate=19)], "bank_transfer")
    assert totals.subtotal_cent == 100000
    assert totals.tax_total_cent == 19000
    assert totals.stamp_tax_cent == 0
    assert totals.total_cent == 119000


def test_cash_stamp_follows_brackets_above_300_dinars():
    # 1000 DA > 300 DA : 1 %
    _, totals = compute_totals([item(quantity=10, unit_price_cent=10000, tax_rate=19)], "cash")
    assert totals.stamp_tax_cent == 1000
    assert totals.total_cent == 120000


def test_cash_invoice_under_300_dinars_has_no_stamp():
    _, totals = compute_totals([item(quantity=3, unit_price_cent=10000, tax_rate=19)], "cash")
    assert totals.subtotal_cent == 30000
    assert totals.stamp_tax_cent == 0
    assert totals.total_cent == 35700


def test_large_cash_invoice_pays_two_percent():
    lines, totals = compute_totals([item(quantity=1, unit_price_cent=15_000_000, tax_rate=19)], "cash")
    assert totals.subtotal_cent == 15_000_000
    assert totals.stamp_tax_cent == 300_000
    assert totals.total_cent == 15_000_000 + totals.tax_total_cent + 300_000
    assert lines[0].total_tax_cent == totals.tax_total_cent


def test_calculator_is_pure_and_idempotent():
    items = [item(quantity=3, unit_price_cent=3333, tax_rate=19, discount_pct=5), item(quantity=1)]
    before = [it.model_dump() for it in items]
    first = compute_totals(items, "cash")
    second = compute_totals(items, "cash")
    assert first == second
    assert [it.model_dump() for it in items] == before


def test_apply_totals_returns_recomputed_copy():
    doc = ProformaInvoice(client_id="c1", items=[item()], payment_type="cash")
    out = apply_totals(doc)
    assert doc.total_cent == 0
    assert out.stamp_tax_cent == 1000
    assert out.total_cent == 120000
    assert out.items[0].total_cent == 119000
    assert apply_totals(out) == out


def test_brackets_from_settings_are_sorted_highest_first():
    brackets = brackets_from_settings([
        StampBracket(threshold=300, rate=0.01),
        StampBracket(threshold=100000, rate=0.05),
    ])
    assert [float(b[0]) for b in brackets] == [100000.0, 300.0]
    assert stamp_tax_cent("cash", 10_000_100, brackets) == 500_005
