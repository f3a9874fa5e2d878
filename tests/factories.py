from core.models.invoice import InvoiceItem


def item(quantity=10, unit_price_cent=10000, tax_rate=19.0, discount_pct=0.0, **kw):
    return InvoiceItem(
        name=kw.pop("name", "Article"), quantity=quantity, unit_price_cent=unit_price_cent,
        tax_rate=tax_rate, discount_pct=discount_pct, **kw,
    )
