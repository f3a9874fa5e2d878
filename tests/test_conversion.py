import pytest

from core.errors import BusinessRuleError, InvalidTransition
from core.models.invoice import ProformaInvoice
from factories import item


def test_convert_copies_proforma(wf, approved_proforma):
    p, inv = wf.conversion.convert_to_final(approved_proforma.id)
    assert p.status == "approved"
    assert p.final_invoice_id == inv.id
    assert inv.proforma_id == p.id
    assert inv.client_id == p.client_id
    assert inv.bc == "BC-17"
    assert inv.number == "F-0001"
    assert [it.total_cent for it in inv.items] == [it.total_cent for it in p.items]
    assert inv.total_cent == p.total_cent == 119000
    assert inv.status == "unpaid"
    assert (inv.amount_paid_cent, inv.client_debt_cent) == (0, inv.total_cent)
    assert wf.invoices.list_by_proforma(p.id) == [inv]


def test_second_conversion_is_rejected(wf, approved_proforma):
    wf.conversion.convert_to_final(approved_proforma.id)
    with pytest.raises(InvalidTransition):
        wf.conversion.convert_to_final(approved_proforma.id)
    assert len(wf.invoices.list_invoices()) == 1


def test_only_approved_proformas_convert(wf, client):
    p = wf.proformas.create_proforma(ProformaInvoice(client_id=client.id, items=[item()]))
    with pytest.raises(InvalidTransition):
        wf.conversion.convert_to_final(p.id)
    assert wf.invoices.list_invoices() == []


def test_undo_conversion(wf, approved_proforma):
    p, inv = wf.conversion.convert_to_final(approved_proforma.id)
    p = wf.conversion.undo_conversion(p.id, inv.id)
    assert p.status == "approved"
    assert p.final_invoice_id is None
    assert wf.invoices.get_by_id(inv.id) is None
    # le numéro libéré est réattribué
    _, again = wf.conversion.convert_to_final(p.id)
    assert again.number == inv.number


def test_undo_blocked_with_payments(wf, approved_proforma):
    p, inv = wf.conversion.convert_to_final(approved_proforma.id)
    wf.payments.add_payment(inv.id, 1000)
    with pytest.raises(BusinessRuleError):
        wf.conversion.undo_conversion(p.id)
    assert wf.proformas.require(p.id).final_invoice_id == inv.id
    assert wf.invoices.get_by_id(inv.id) is not None


def test_undo_checks_link(wf, approved_proforma):
    with pytest.raises(InvalidTransition):
        wf.conversion.undo_conversion(approved_proforma.id)
    p, _ = wf.conversion.convert_to_final(approved_proforma.id)
    with pytest.raises(BusinessRuleError):
        wf.conversion.undo_conversion(p.id, "autre-facture")


def test_unapprove_blocked_while_converted(wf, approved_proforma):
    wf.conversion.convert_to_final(approved_proforma.id)
    with pytest.raises(InvalidTransition):
        wf.proformas.unapprove(approved_proforma.id)


def test_deleting_final_invoice_unlinks_proforma(wf, approved_proforma):
    p, inv = wf.conversion.convert_to_final(approved_proforma.id)
    wf.invoices.delete_invoice(inv.id)
    assert wf.proformas.require(p.id).final_invoice_id is None
