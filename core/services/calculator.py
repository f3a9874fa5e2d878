"""
Calculs monétaires des documents (lignes, TVA, remise, droit de timbre).

Toutes les fonctions sont pures : elles ne touchent ni au stockage ni à leurs
arguments et renvoient des copies. Les montants sont en centimes (int), les
taux et remises en pourcentage.

La remise est TOUJOURS un pourcentage de la ligne :
    total_excl = quantité * prix unitaire * (1 - remise / 100)
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple, TypeVar

from core.models.invoice import InvoiceItem

HUNDRED = Decimal(100)

# (seuil en DA, taux) du plus haut au plus bas ; bornes basses exclusives
STAMP_DUTY_BRACKETS: Tuple[Tuple[Decimal, Decimal], ...] = (
    (Decimal("100000"), Decimal("0.02")),
    (Decimal("30000"), Decimal("0.015")),
    (Decimal("300"), Decimal("0.01")),
)

STAMP_DUTY_PAYMENT_TYPE = "cash"


class LineTotals(NamedTuple):
    total_excl_cent: int
    total_tax_cent: int
    total_cent: int


class DocumentTotals(NamedTuple):
    subtotal_cent: int
    tax_total_cent: int
    stamp_tax_cent: int
    total_cent: int
    discount_total_cent: int


def _round_cent(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _dec(value) -> Decimal:
    return Decimal(str(value))


def line_totals(quantity: int, unit_price_cent: int, tax_rate: float, discount_pct: float = 0.0) -> LineTotals:
    gross = Decimal(int(quantity)) * Decimal(int(unit_price_cent))
    excl = _round_cent(gross * (1 - _dec(discount_pct) / HUNDRED))
    tax = _round_cent(Decimal(excl) * _dec(tax_rate) / HUNDRED)
    return LineTotals(excl, tax, excl + tax)


def line_discount_cent(item: InvoiceItem) -> int:
    gross = item.quantity * item.unit_price_cent
    return gross - line_totals(item.quantity, item.unit_price_cent, 0, item.discount_pct).total_excl_cent


def compute_item(item: InvoiceItem) -> InvoiceItem:
    t = line_totals(item.quantity, item.unit_price_cent, item.tax_rate, item.discount_pct)
    return item.model_copy(update=t._asdict())


def brackets_from_settings(stamp_duty: Optional[Iterable]) -> Tuple[Tuple[Decimal, Decimal], ...]:
    """Convertit settings.stamp_duty (threshold/rate) en barème trié, plus haut seuil d'abord."""
    if not stamp_duty:
        return STAMP_DUTY_BRACKETS
    out = [(_dec(b.threshold), _dec(b.rate)) for b in stamp_duty]
    return tuple(sorted(out, key=lambda b: b[0], reverse=True))


def stamp_tax_cent(
    payment_type: Optional[str],
    subtotal_cent: int,
    brackets: Sequence[Tuple[Decimal, Decimal]] = STAMP_DUTY_BRACKETS,
) -> int:
    """Droit de timbre : uniquement pour un règlement en espèces."""
    if payment_type != STAMP_DUTY_PAYMENT_TYPE:
        return 0
    subtotal = Decimal(int(subtotal_cent))
    for threshold, rate in brackets:
        if subtotal > threshold * HUNDRED:
            return _round_cent(subtotal * rate)
    return 0


def compute_totals(
    items: Iterable[InvoiceItem],
    payment_type: Optional[str],
    brackets: Sequence[Tuple[Decimal, Decimal]] = STAMP_DUTY_BRACKETS,
) -> Tuple[List[InvoiceItem], DocumentTotals]:
    lines = [compute_item(it) for it in items]
    subtotal = sum(ln.total_excl_cent for ln in lines)
    tax_total = sum(ln.total_tax_cent for ln in lines)
    stamp = stamp_tax_cent(payment_type, subtotal, brackets)
    discount = sum(line_discount_cent(ln) for ln in lines)
    return lines, DocumentTotals(subtotal, tax_total, stamp, subtotal + tax_total + stamp, discount)


D = TypeVar("D")


def apply_totals(document: D, brackets: Sequence[Tuple[Decimal, Decimal]] = STAMP_DUTY_BRACKETS) -> D:
    """Copie du document (proforma/facture) avec lignes et totaux d'en-tête recalculés."""
    lines, totals = compute_totals(document.items, document.payment_type, brackets)  # type: ignore[attr-defined]
    return document.model_copy(update={  # type: ignore[attr-defined]
        "items": lines,
        "subtotal_cent": totals.subtotal_cent,
        "tax_total_cent": totals.tax_total_cent,
        "stamp_tax_cent": totals.stamp_tax_cent,
        "total_cent": totals.total_cent,
    })
