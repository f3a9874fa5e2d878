# core/services/document_service.py
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from shutil import which
from typing import Any, Dict, Literal, Optional, Union

import pdfkit  # utilisé si wkhtmltopdf dispo
from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import Settings
from core.models.client import Client
from core.models.delivery import DELIVERY_STATUS_LABELS, DeliveryNote
from core.models.invoice import (
    FINAL_STATUS_LABELS,
    PROFORMA_STATUS_LABELS,
    FinalInvoice,
    ProformaInvoice,
)
from core.services.calculator import line_discount_cent

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates" / "pdf"

DocumentKind = Literal["proforma", "final", "delivery"]
Document = Union[ProformaInvoice, FinalInvoice, DeliveryNote]

TITLES = {
    "proforma": "Facture proforma",
    "final": "Facture",
    "delivery": "Bon de livraison",
}


# ---------- Formats ----------
def format_money(cents: Optional[int]) -> str:
    """1190000 -> '11 900,00 DA'"""
    value = int(cents or 0) / 100
    return f"{value:,.2f} DA".replace(",", " ").replace(".", ",")


def _slug(text: str) -> str:
    text = (text or "").strip()
    text = re.sub(r'[\\/:*?"<>|\n\r\t]', "_", text)
    text = re.sub(r"\s+", " ", text)
    return text or "Client"


def _fmt_date(d) -> str:
    return d.strftime("%d/%m/%Y") if d else ""


# ---------- PDF helpers ----------
def _clean_path(p: str) -> str:
    """Corrige 'C\\:\\Program Files\\...' -> 'C:\\Program Files\\...' et normalise."""
    if not p:
        return ""
    p = p.strip().strip('"').strip("'")
    p = p.replace("\\:", ":")
    return os.path.normpath(p)


def _find_wkhtmltopdf(settings: Settings) -> Optional[str]:
    """
    Localise wkhtmltopdf :
    - settings.pdf.wkhtmltopdf_path (déjà surchargé par WKHTMLTOPDF)
    - chemins Windows connus
    - PATH
    """
    configured = settings.pdf.wkhtmltopdf_path
    if configured:
        path = _clean_path(configured)
        if Path(path).is_file():
            return path

    for c in (
        r"C:\Program Files\wkhtmltopdf\bin\wkhtmltopdf.exe",
        r"C:\Program Files (x86)\wkhtmltopdf\bin\wkhtmltopdf.exe",
    ):
        if Path(c).is_file():
            return c

    found = which("wkhtmltopdf")
    return _clean_path(found) if found else None


def _render_pdf_with_weasyprint(html: str, out_path: Path, base_url: Optional[str]) -> None:
    """Fallback WeasyPrint (si wkhtmltopdf absent)."""
    try:
        from weasyprint import HTML
    except ImportError as e:
        raise RuntimeError(
            "Aucun wkhtmltopdf trouvé et WeasyPrint n'est pas installé. "
            "Installe WeasyPrint (pip install weasyprint) ou configure wkhtmltopdf.\n"
            f"Détails: {e}"
        ) from e
    HTML(string=html, base_url=base_url).write_pdf(str(out_path))


# ---------- Service ----------
class DocumentService:
    """Contexte de gabarit, rendu HTML (Jinja2) et export PDF des documents."""

    def __init__(self, settings: Settings, env: Optional[Environment] = None):
        self.settings = settings
        self.env = env or Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    @staticmethod
    def kind_of(doc: Document) -> DocumentKind:
        if isinstance(doc, FinalInvoice):
            return "final"
        if isinstance(doc, ProformaInvoice):
            return "proforma"
        return "delivery"

    @staticmethod
    def _status_label(kind: DocumentKind, doc: Document) -> str:
        if kind == "final":
            return FINAL_STATUS_LABELS.get(doc.status, doc.status)
        if kind == "proforma":
            return PROFORMA_STATUS_LABELS.get(doc.status, doc.status)
        return DELIVERY_STATUS_LABELS.get(doc.status, doc.status)

    def template_context(self, doc: Document, client: Optional[Client] = None) -> Dict[str, Any]:
        """Champs à plat attendus par les gabarits d'impression + boucle 'items'."""
        kind = self.kind_of(doc)
        c = client
        ctx: Dict[str, Any] = {
            "kind": kind,
            "title": TITLES[kind],
            "number": doc.number or "",
            "issue_date": _fmt_date(doc.issue_date),
            "due_date": _fmt_date(getattr(doc, "due_date", None)),
            "delivery_date": _fmt_date(getattr(doc, "delivery_date", None)),
            "status": doc.status,
            "status_label": self._status_label(kind, doc),
            "notes": doc.notes or "",
            "client_name": c.name if c else "",
            "client_address": c.address if c else "",
            "client_city": c.city if c else "",
            "client_phone": c.phone if c else "",
            "client_email": (c.email or "") if c else "",
            "client_taxid": c.taxid if c else "",
            "client_rc": (c.rc or "") if c else "",
            "client_nis": (c.nis or "") if c else "",
            "client_ai": (c.ai or "") if c else "",
            "client_rib": (c.rib or "") if c else "",
            "items": [
                {
                    "name": it.name,
                    "unit": it.unit,
                    "quantity": it.quantity,
                    "unit_price": format_money(it.unit_price_cent),
                    "tax_rate": f"{it.tax_rate:g} %",
                    "discount": f"{it.discount_pct:g} %",
                    "total_excl": format_money(it.total_excl_cent),
                    "total": format_money(it.total_cent),
                }
                for it in doc.items
            ],
            "company": self.settings.company.model_dump(),
        }
        if kind != "delivery":
            discount = sum(line_discount_cent(it) for it in doc.items)
            ctx.update({
                "payment_type": doc.payment_type or "",
                "bc": doc.bc or "",
                "subtotal": format_money(doc.subtotal_cent),
                "tax_total": format_money(doc.tax_total_cent),
                "stamp_tax": format_money(doc.stamp_tax_cent),
                "discount_total": format_money(discount) if discount else "",
                "total": format_money(doc.total_cent),
            })
        if kind == "final":
            ctx.update({
                "amount_paid": format_money(doc.amount_paid_cent),
                "client_debt": format_money(doc.client_debt_cent),
            })
        if kind == "delivery":
            ctx.update({
                "driver_name": doc.driver_name or "",
                "truck_id": doc.truck_id or "",
                "delivery_company": doc.delivery_company or "",
            })
        return ctx

    def render_html(self, doc: Document, client: Optional[Client] = None) -> str:
        tpl = self.env.get_template("document.html")
        return tpl.render(**self.template_context(doc, client))

    def export_pdf(self, doc: Document, client: Optional[Client] = None, out_dir: Optional[str] = None) -> str:
        """
        Génère le PDF du document.
        Essaie wkhtmltopdf (pdfkit) en priorité, sinon fallback WeasyPrint.
        """
        html = self.render_html(doc, client)
        kind = self.kind_of(doc)

        exports_dir = Path(out_dir) if out_dir else (self.settings.exports_dir / kind)
        exports_dir.mkdir(parents=True, exist_ok=True)
        safe_client = _slug(client.name if client else "")
        out_path = exports_dir / f"{_slug(doc.number or doc.id)} ({safe_client}).pdf"

        wkhtml = _find_wkhtmltopdf(self.settings)
        if wkhtml:
            try:
                config = pdfkit.configuration(wkhtmltopdf=wkhtml)
                options = {"enable-local-file-access": None, "quiet": "", "encoding": "UTF-8"}
                pdfkit.from_string(html, str(out_path), options=options, configuration=config)
                logger.info("PDF généré %s", out_path)
                return str(out_path)
            except OSError as e:
                logger.warning("Échec wkhtmltopdf (%s). Fallback WeasyPrint...", e)

        _render_pdf_with_weasyprint(html, out_path, base_url=str(TEMPLATES_DIR))
        logger.info("PDF généré (WeasyPrint) %s", out_path)
        return str(out_path)
