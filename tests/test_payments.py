import threading
from datetime import date

import pytest

from core.errors import BusinessRuleError, InvalidTransition, NotFoundError


def assert_ledger_invariant(wf, inv):
    ledger = sum(p.amount_cent for p in wf.payments.list_payments(inv.id))
    assert inv.amount_paid_cent == ledger
    assert inv.amount_paid_cent + inv.client_debt_cent == inv.total_cent


def test_partial_then_full_payment(wf, make_invoice):
    inv = make_invoice()
    assert inv.total_cent == 100000
    assert inv.client_debt_cent == 100000

    res = wf.payments.add_payment(inv.id, 40000, payment_date=date(2026, 3, 1), method="cash")
    assert not res.clamped
    assert res.invoice.amount_paid_cent == 40000
    assert res.invoice.client_debt_cent == 60000
    assert res.invoice.status == "partially_paid"
    assert_ledger_invariant(wf, res.invoice)

    res = wf.payments.add_payment(inv.id, 60000)
    assert res.invoice.amount_paid_cent == 100000
    assert res.invoice.client_debt_cent == 0
    assert res.invoice.status == "paid"
    assert_ledger_invariant(wf, res.invoice)

    stored = wf.invoices.require(inv.id)
    assert (stored.amount_paid_cent, stored.client_debt_cent) == (100000, 0)


def test_overpayment_is_clamped(wf, make_invoice, caplog):
    inv = make_invoice()
    wf.payments.add_payment(inv.id, 70000)
    res = wf.payments.add_payment(inv.id, 50000)
    assert res.clamped
    assert res.requested_cent == 50000
    assert res.payment.amount_cent == 30000
    assert res.invoice.status == "paid"
    assert "plafonné" in caplog.text
    assert_ledger_invariant(wf, res.invoice)


def test_payment_rejected_without_debt(wf, make_invoice):
    inv = make_invoice()
    wf.payments.add_payment(inv.id, 100000)
    with pytest.raises(InvalidTransition):
        wf.payments.add_payment(inv.id, 1)


@pytest.mark.parametrize("amount", [0, -500])
def test_non_positive_amount_rejected(wf, make_invoice, amount):
    inv = make_invoice()
    with pytest.raises(BusinessRuleError):
        wf.payments.add_payment(inv.id, amount)
    assert wf.payments.list_payments(inv.id) == []


def test_no_payment_on_cancelled_invoice(wf, make_invoice):
    inv = make_invoice()
    wf.invoices.cancel(inv.id)
    with pytest.raises(InvalidTransition):
        wf.payments.add_payment(inv.id, 1000)


def test_delete_payment_recomputes(wf, make_invoice):
    inv = make_invoice()
    first = wf.payments.add_payment(inv.id, 40000).payment
    wf.payments.add_payment(inv.id, 60000)

    inv = wf.payments.delete_payment(first.id, inv.id)
    assert inv.amount_paid_cent == 60000
    assert inv.client_debt_cent == 40000
    assert inv.status == "partially_paid"
    assert_ledger_invariant(wf, inv)


def test_delete_payment_of_other_invoice(wf, make_invoice):
    a, b = make_invoice(), make_invoice()
    p = wf.payments.add_payment(a.id, 1000).payment
    with pytest.raises(NotFoundError):
        wf.payments.delete_payment(p.id, b.id)
    assert len(wf.payments.list_payments(a.id)) == 1


def test_payments_listed_in_insertion_order(wf, make_invoice):
    inv = make_invoice()
    ids = [
        wf.payments.add_payment(inv.id, 100, payment_date=d).payment.id
        for d in (date(2026, 5, 3), date(2026, 5, 1), date(2026, 5, 2))
    ]
    assert [p.id for p in wf.payments.list_payments(inv.id)] == ids


def test_preview_applies_clamp(wf, make_invoice):
    inv = make_invoice()
    wf.payments.add_payment(inv.id, 25000)
    assert wf.payments.preview(inv.id, 10000) == (10000, 35000, 65000)
    assert wf.payments.preview(inv.id, 999999) == (75000, 100000, 0)


def test_failed_aggregate_update_rolls_back_payment(wf, make_invoice, monkeypatch):
    inv = make_invoice()

    def boom(invoice_id):
        raise RuntimeError("crash")

    monkeypatch.setattr(wf.invoices, "refresh_aggregates", boom)
    with pytest.raises(RuntimeError):
        wf.payments.add_payment(inv.id, 1000)
    assert wf.payments.list_payments(inv.id) == []


def test_concurrent_payments_never_overpay(wf, make_invoice):
    inv = make_invoice()
    start = threading.Barrier(4)
    results, errors = [], []

    def pay():
        start.wait()
        try:
            results.append(wf.payments.add_payment(inv.id, 80000))
        except BusinessRuleError as e:
            errors.append(e)

    threads = [threading.Thread(target=pay) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) + len(errors) == 4
    assert sum(r.payment.amount_cent for r in results) == inv.total_cent
    stored = wf.invoices.require(inv.id)
    assert stored.status == "paid"
    assert_ledger_invariant(wf, stored)


def test_payment_rows_locked_once_credited(wf, make_invoice):
    inv = make_invoice()
    p = wf.payments.add_payment(inv.id, 40000).payment
    wf.invoices.credit(inv.id)
    with pytest.raises(InvalidTransition):
        wf.payments.delete_payment(p.id, inv.id)
    assert len(wf.payments.list_payments(inv.id)) == 1
