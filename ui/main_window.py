from __future__ import annotations
from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QTabWidget, QVBoxLayout, QHBoxLayout,
    QLabel, QPushButton, QFileDialog, QMessageBox, QTableWidget,
    QTableWidgetItem, QHeaderView, QGroupBox, QDialog, QSpinBox, QInputDialog
)
from datetime import date
from typing import Callable, Dict, List, Optional
import logging
import sys

from pydantic import ValidationError

from core.config import configure_logging, load_settings
from core.errors import FacturationError
from core.models.delivery import DELIVERY_STATUS_LABELS
from core.models.invoice import FINAL_STATUS_LABELS, PROFORMA_STATUS_LABELS, FinalInvoice, ProformaInvoice
from core.models.payment import PAYMENT_METHOD_LABELS
from core.models.user import User, UserRole
from core.services.document_service import format_money
from core.services.permissions import Permissions
from core.services.status import final_actions, proforma_actions
from core.services.workflow_service import WorkflowService
from ui.widgets.client_form import ClientForm
from ui.widgets.document_editor import DocumentEditor
from ui.widgets.payment_dialog import PaymentDialog
from ui.widgets.product_form import ProductForm

logger = logging.getLogger(__name__)

MONTHS = ["Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
          "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre"]


def _table(headers: List[str]) -> QTableWidget:
    t = QTableWidget(0, len(headers))
    t.setHorizontalHeaderLabels(headers)
    t.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
    t.setSelectionBehavior(t.SelectionBehavior.SelectRows)
    t.setEditTriggers(t.EditTrigger.NoEditTriggers)
    return t


def _fill(t: QTableWidget, rows: List[List[str]]) -> None:
    """Remplit la table ; la dernière colonne porte l'ID."""
    t.setRowCount(0)
    for values in rows:
        r = t.rowCount(); t.insertRow(r)
        for col, v in enumerate(values):
            t.setItem(r, col, QTableWidgetItem(v))
    t.resizeRowsToContents()


def _selected_id(t: QTableWidget) -> Optional[str]:
    row = t.currentRow()
    if row < 0: return None
    return t.item(row, t.columnCount() - 1).text()


class MainWindow(QMainWindow):
    def __init__(self, workflow: Optional[WorkflowService] = None):
        super().__init__()
        self.setWindowTitle("Facturation - Proformas, Factures & Livraisons")
        self.resize(1280, 800)
        self.workflow = workflow or WorkflowService()

        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)

        self.tabs.addTab(self._clients_tab(), "Clients")
        self.tabs.addTab(self._catalog_tab(), "Catalogue")
        self.tabs.addTab(self._proformas_tab(), "Proformas")
        self.tabs.addTab(self._invoices_tab(), "Factures")
        self.tabs.addTab(self._deliveries_tab(), "Livraisons")
        self.tabs.addTab(self._debts_tab(), "Créances")
        self.tabs.addTab(self._etat104_tab(), "État 104")
        self.tabs.addTab(self._settings_tab(), "Paramètres")
        self.tabs.currentChanged.connect(lambda _: self._refresh_all())

    # ==================== helpers ====================
    def _run(self, title: str, fn: Callable, *args, **kwargs):
        """Frontière UI : toute erreur métier / validation devient une boîte de dialogue."""
        try:
            return fn(*args, **kwargs)
        except ValidationError as e:
            logger.warning("%s: données invalides: %s", title, e)
            QMessageBox.warning(self, title, f"Données invalides :\n{e}")
        except FacturationError as e:
            logger.warning("%s: %s", title, e)
            QMessageBox.warning(self, title, str(e))
        except (OSError, RuntimeError) as e:
            logger.exception("%s: erreur inattendue", title)
            QMessageBox.critical(self, title, str(e))
        return None

    def _client_name(self, client_id: str) -> str:
        c = self.workflow.clients.get_by_id(client_id)
        return c.name if c else "?"

    def _refresh_all(self):
        self._refresh_clients()
        self._refresh_catalog()
        self._refresh_proformas()
        self._refresh_invoices()
        self._refresh_deliveries()
        self._refresh_debts()

    def _export(self, doc):
        out = self._run("PDF", self.workflow.export_pdf, doc)
        if out:
            QMessageBox.information(self, "PDF", f"Fichier généré :\n{out}")

    # ==================== CLIENTS ====================
    def _clients_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_new = QPushButton("Nouveau")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        bar.addWidget(btn_new); bar.addWidget(btn_edit); bar.addWidget(btn_del); bar.addStretch(1)
        root.addLayout(bar)

        self.tbl_clients = _table(["Nom", "NIF", "Email", "Téléphone", "Ville", "ID"])
        root.addWidget(self.tbl_clients, 1)

        btn_new.clicked.connect(self._client_new)
        btn_edit.clicked.connect(self._client_edit)
        btn_del.clicked.connect(self._client_delete)

        self._refresh_clients()
        return w

    def _refresh_clients(self):
        _fill(self.tbl_clients, [
            [c.name, c.taxid, c.email or "", c.phone, c.city, c.id]
            for c in self.workflow.clients.list_clients()
        ])

    def _client_new(self):
        dlg = ClientForm(self)
        if dlg.exec() == QDialog.Accepted:
            c = self._run("Client", dlg.get_client)
            if not c:
                return
            self._run("Client", self.workflow.clients.add_client, c)
            self._refresh_clients()

    def _client_edit(self):
        cid = _selected_id(self.tbl_clients)
        if not cid:
            QMessageBox.information(self, "Clients", "Sélectionne une ligne d’abord.")
            return
        current = self.workflow.clients.get_by_id(cid)
        if not current:
            QMessageBox.warning(self, "Clients", "Impossible de charger ce client.")
            return
        dlg = ClientForm(self, client=current)
        if dlg.exec() == QDialog.Accepted:
            c = self._run("Client", dlg.get_client)
            if not c:
                return
            self._run("Client", self.workflow.clients.update_client, c)
            self._refresh_clients()

    def _client_delete(self):
        cid = _selected_id(self.tbl_clients)
        if not cid:
            QMessageBox.information(self, "Clients", "Sélectionne une ligne d’abord.")
            return
        if QMessageBox.question(self, "Suppression", "Supprimer ce client ?") == QMessageBox.Yes:
            self._run("Suppression", self.workflow.clients.delete_client, cid)
            self._refresh_clients()

    # ==================== CATALOGUE ====================
    def _catalog_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_new = QPushButton("Nouveau produit")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        btn_stock = QPushButton("Mouvement de stock")
        for b in (btn_new, btn_edit, btn_del, btn_stock): bar.addWidget(b)
        bar.addStretch(1)
        root.addLayout(bar)

        self.tbl_products = _table(["Code", "Désignation", "Prix HT", "TVA", "Stock", "Unité", "ID"])
        root.addWidget(self.tbl_products, 1)

        btn_new.clicked.connect(self._product_new)
        btn_edit.clicked.connect(self._product_edit)
        btn_del.clicked.connect(self._product_delete)
        btn_stock.clicked.connect(self._product_stock)

        self._refresh_catalog()
        return w

    def _refresh_catalog(self):
        _fill(self.tbl_products, [
            [p.code, p.name, format_money(p.unit_price_cent), f"{p.tax_rate:g} %",
             str(p.stock_quantity), p.unit, p.id]
            for p in self.workflow.catalog.list_products()
        ])

    def _product_new(self):
        dlg = ProductForm(self)
        if dlg.exec() == QDialog.Accepted:
            payload = dlg.get_item()
            if not payload:
                QMessageBox.warning(self, "Validation", "Code et désignation sont obligatoires.")
                return
            self._run("Produit", self.workflow.catalog.add_product, payload)
            self._refresh_catalog()

    def _product_edit(self):
        pid = _selected_id(self.tbl_products)
        if not pid:
            QMessageBox.information(self, "Catalogue", "Sélectionne une ligne d’abord.")
            return
        cur = self.workflow.catalog.get_product(pid)
        if not cur:
            QMessageBox.warning(self, "Catalogue", "Impossible de charger cet élément.")
            return
        dlg = ProductForm(self, product=cur)
        if dlg.exec() == QDialog.Accepted:
            payload = dlg.get_item()
            if not payload:
                QMessageBox.warning(self, "Validation", "Code et désignation sont obligatoires.")
                return
            self._run("Produit", self.workflow.catalog.update_product, payload)
            self._refresh_catalog()

    def _product_delete(self):
        pid = _selected_id(self.tbl_products)
        if not pid:
            QMessageBox.information(self, "Catalogue", "Sélectionne une ligne d’abord.")
            return
        if QMessageBox.question(self, "Suppression", "Supprimer ce produit ?") == QMessageBox.Yes:
            self._run("Suppression", self.workflow.catalog.delete_product, pid)
            self._refresh_catalog()

    def _product_stock(self):
        pid = _selected_id(self.tbl_products)
        if not pid:
            QMessageBox.information(self, "Catalogue", "Sélectionne une ligne d’abord.")
            return
        delta, ok = QInputDialog.getInt(self, "Stock", "Entrée (+) / sortie (-) :", 0, -10_000_000, 10_000_000)
        if ok and delta:
            self._run("Stock", self.workflow.catalog.adjust_stock, pid, delta)
            self._refresh_catalog()

    # ==================== PROFORMAS ====================
    def _proformas_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)

        bar1 = QHBoxLayout()
        btn_new = QPushButton("Nouvelle proforma")
        btn_pdf = QPushButton("Générer PDF")
        bar1.addWidget(btn_new); bar1.addStretch(1); bar1.addWidget(btn_pdf)
        root.addLayout(bar1)

        # un bouton par action de la machine à états, activé selon proforma_actions
        bar2 = QHBoxLayout()
        self.proforma_buttons: Dict[str, QPushButton] = {}
        for action, label in (
            ("edit", "Modifier"), ("delete", "Supprimer"), ("send", "Envoyer"),
            ("approve", "Approuver"), ("reject", "Rejeter"), ("unapprove", "Désapprouver"),
            ("convert", "Convertir en facture"), ("undo_conversion", "Annuler la conversion"),
        ):
            b = QPushButton(label); b.setEnabled(False)
            b.clicked.connect(lambda _=False, a=action: self._proforma_action(a))
            bar2.addWidget(b)
            self.proforma_buttons[action] = b
        bar2.addStretch(1)
        root.addLayout(bar2)

        self.tbl_proformas = _table(["Numéro", "Client", "Date", "Statut", "Total TTC", "Facture", "ID"])
        root.addWidget(self.tbl_proformas, 1)

        btn_new.clicked.connect(self._proforma_new)
        btn_pdf.clicked.connect(self._proforma_pdf)
        self.tbl_proformas.itemSelectionChanged.connect(self._on_proforma_selected)

        self._refresh_proformas()
        return w

    def _refresh_proformas(self):
        rows = []
        for p in self.workflow.proformas.list_proformas():
            inv = self.workflow.invoices.get_by_id(p.final_invoice_id) if p.final_invoice_id else None
            rows.append([
                p.number or "—", self._client_name(p.client_id), p.issue_date.isoformat(),
                PROFORMA_STATUS_LABELS.get(p.status, p.status), format_money(p.total_cent),
                inv.number if inv else "—", p.id,
            ])
        _fill(self.tbl_proformas, rows)
        self._on_proforma_selected()

    def _selected_proforma(self) -> Optional[ProformaInvoice]:
        pid = _selected_id(self.tbl_proformas)
        return self.workflow.proformas.get_by_id(pid) if pid else None

    def _on_proforma_selected(self):
        p = self._selected_proforma()
        allowed = proforma_actions(p, self.workflow.permissions) if p else []
        for action, b in self.proforma_buttons.items():
            b.setEnabled(action in allowed)

    def _proforma_new(self):
        dlg = DocumentEditor(self, self.workflow, model=ProformaInvoice)
        if dlg.exec() == QDialog.Accepted:
            p = dlg.get_document()
            if not p:
                QMessageBox.warning(self, "Validation", "Client obligatoire."); return
            self._run("Proforma", self.workflow.proformas.create_proforma, p)
            self._refresh_proformas()

    def _proforma_action(self, action: str):
        p = self._selected_proforma()
        if not p:
            QMessageBox.information(self, "Proformas", "Sélectionne une proforma."); return
        wf = self.workflow
        if action == "edit":
            dlg = DocumentEditor(self, wf, document=p)
            if dlg.exec() != QDialog.Accepted:
                return
            p2 = dlg.get_document()
            if not p2:
                QMessageBox.warning(self, "Validation", "Client obligatoire."); return
            self._run("Proforma", wf.proformas.update_proforma, p2)
        elif action == "delete":
            if QMessageBox.question(self, "Suppression", "Supprimer cette proforma ?") == QMessageBox.Yes:
                self._run("Suppression", wf.proformas.delete_proforma, p.id)
        elif action == "convert":
            res = self._run("Conversion", wf.conversion.convert_to_final, p.id)
            if res:
                QMessageBox.information(self, "Conversion", f"Facture {res[1].number} créée.")
        elif action == "undo_conversion":
            if QMessageBox.question(self, "Conversion", "Supprimer la facture liée ?") == QMessageBox.Yes:
                self._run("Conversion", wf.conversion.undo_conversion, p.id)
        else:
            self._run("Proforma", getattr(wf.proformas, action), p.id)
        self._refresh_proformas()

    def _proforma_pdf(self):
        p = self._selected_proforma()
        if not p:
            QMessageBox.information(self, "Proformas", "Sélectionne une proforma."); return
        self._export(p)

    # ==================== FACTURES ====================
    def _invoices_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)

        bar1 = QHBoxLayout()
        btn_new = QPushButton("Nouvelle facture")
        btn_delivery = QPushButton("Créer bon de livraison")
        btn_pdf = QPushButton("Générer PDF")
        bar1.addWidget(btn_new); bar1.addStretch(1); bar1.addWidget(btn_delivery); bar1.addWidget(btn_pdf)
        root.addLayout(bar1)

        bar2 = QHBoxLayout()
        self.invoice_buttons: Dict[str, QPushButton] = {}
        for action, label in (
            ("edit", "Modifier"), ("delete", "Supprimer"), ("add_payment", "Encaisser"),
            ("mark_paid", "Marquer payée"), ("cancel", "Annuler"), ("credit", "Avoir"),
            ("revert", "Rétablir non payée"),
        ):
            b = QPushButton(label); b.setEnabled(False)
            b.clicked.connect(lambda _=False, a=action: self._invoice_action(a))
            bar2.addWidget(b)
            self.invoice_buttons[action] = b
        bar2.addStretch(1)
        root.addLayout(bar2)

        self.lbl_invoice = QLabel("Total: – | Payé: – | Reste: –")
        root.addWidget(self.lbl_invoice)

        self.tbl_invoices = _table(["Numéro", "Client", "Date", "Statut", "Total TTC", "Payé", "Reste", "ID"])
        root.addWidget(self.tbl_invoices, 2)

        grp = QGroupBox("Paiements"); lay = QVBoxLayout(grp)
        bar3 = QHBoxLayout()
        self.btn_payment_del = QPushButton("Supprimer le paiement")
        bar3.addStretch(1); bar3.addWidget(self.btn_payment_del)
        lay.addLayout(bar3)
        self.tbl_payments = _table(["Date", "Montant", "Moyen", "Référence", "Notes", "ID"])
        lay.addWidget(self.tbl_payments)
        root.addWidget(grp, 1)

        btn_new.clicked.connect(self._invoice_new)
        btn_pdf.clicked.connect(self._invoice_pdf)
        btn_delivery.clicked.connect(self._invoice_delivery)
        self.btn_payment_del.clicked.connect(self._payment_delete)
        self.tbl_invoices.itemSelectionChanged.connect(self._on_invoice_selected)

        self._refresh_invoices()
        return w

    def _refresh_invoices(self):
        _fill(self.tbl_invoices, [
            [inv.number or "—", self._client_name(inv.client_id), inv.issue_date.isoformat(),
             FINAL_STATUS_LABELS.get(inv.status, inv.status), format_money(inv.total_cent),
             format_money(inv.amount_paid_cent), format_money(inv.client_debt_cent), inv.id]
            for inv in self.workflow.invoices.list_invoices()
        ])
        self._on_invoice_selected()

    def _selected_invoice(self) -> Optional[FinalInvoice]:
        iid = _selected_id(self.tbl_invoices)
        return self.workflow.invoices.get_by_id(iid) if iid else None

    def _on_invoice_selected(self):
        inv = self._selected_invoice()
        allowed = final_actions(inv, self.workflow.permissions) if inv else []
        for action, b in self.invoice_buttons.items():
            b.setEnabled(action in allowed)
        self.btn_payment_del.setEnabled("delete_payment" in allowed)
        if not inv:
            self.lbl_invoice.setText("Total: – | Payé: – | Reste: –")
            self.tbl_payments.setRowCount(0)
            return
        self.lbl_invoice.setText(
            f"Total: {format_money(inv.total_cent)} | Payé: {format_money(inv.amount_paid_cent)} | "
            f"Reste: {format_money(inv.client_debt_cent)}"
        )
        _fill(self.tbl_payments, [
            [p.payment_date.isoformat(), format_money(p.amount_cent),
             PAYMENT_METHOD_LABELS.get(p.payment_method, p.payment_method),
             p.reference or "", p.notes or "", p.id]
            for p in self.workflow.payments.list_payments(inv.id)
        ])

    def _invoice_new(self):
        dlg = DocumentEditor(self, self.workflow, model=FinalInvoice)
        if dlg.exec() == QDialog.Accepted:
            inv = dlg.get_document()
            if not inv:
                QMessageBox.warning(self, "Validation", "Client obligatoire."); return
            self._run("Facture", self.workflow.invoices.create_invoice, inv)
            self._refresh_invoices()

    def _invoice_action(self, action: str):
        inv = self._selected_invoice()
        if not inv:
            QMessageBox.information(self, "Factures", "Sélectionne une facture."); return
        wf = self.workflow
        if action == "edit":
            dlg = DocumentEditor(self, wf, document=inv)
            if dlg.exec() != QDialog.Accepted:
                return
            inv2 = dlg.get_document()
            if not inv2:
                QMessageBox.warning(self, "Validation", "Client obligatoire."); return
            self._run("Facture", wf.invoices.update_invoice, inv2)
        elif action == "delete":
            if QMessageBox.question(self, "Suppression", "Supprimer cette facture ?") == QMessageBox.Yes:
                self._run("Suppression", wf.invoices.delete_invoice, inv.id)
        elif action == "add_payment":
            self._invoice_add_payment(inv)
        else:
            self._run("Facture", getattr(wf.invoices, action), inv.id)
        self._refresh_invoices()

    def _invoice_add_payment(self, inv: FinalInvoice):
        payments = self.workflow.payments
        dlg = PaymentDialog(self, debt_cent=inv.client_debt_cent,
                            preview=lambda amount: payments.preview(inv.id, amount))
        if dlg.exec() != QDialog.Accepted:
            return
        data = dlg.get_payment()
        res = self._run(
            "Paiement", payments.add_payment, inv.id, data.amount_cent,
            payment_date=data.payment_date, method=data.method,
            reference=data.reference, notes=data.notes,
        )
        if res and res.clamped:
            QMessageBox.information(
                self, "Paiement",
                f"Montant ramené au reste dû : {format_money(res.payment.amount_cent)} "
                f"(saisi {format_money(res.requested_cent)})."
            )

    def _payment_delete(self):
        inv = self._selected_invoice()
        pid = _selected_id(self.tbl_payments)
        if not inv or not pid:
            QMessageBox.information(self, "Paiements", "Sélectionne un paiement."); return
        if QMessageBox.question(self, "Suppression", "Supprimer ce paiement ?") == QMessageBox.Yes:
            self._run("Paiement", self.workflow.payments.delete_payment, pid, inv.id)
            self._refresh_invoices()

    def _invoice_delivery(self):
        inv = self._selected_invoice()
        if not inv:
            QMessageBox.information(self, "Factures", "Sélectionne une facture."); return
        note = self._run("Livraison", self.workflow.deliveries.create_from_invoice, inv.id)
        if note:
            QMessageBox.information(self, "Livraison", f"Bon de livraison {note.number} créé.")
            self._refresh_deliveries()

    def _invoice_pdf(self):
        inv = self._selected_invoice()
        if not inv:
            QMessageBox.information(self, "Factures", "Sélectionne une facture."); return
        self._export(inv)

    # ==================== LIVRAISONS ====================
    def _deliveries_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_done = QPushButton("Marquer livré")
        btn_cancel = QPushButton("Annuler")
        btn_del = QPushButton("Supprimer")
        btn_pdf = QPushButton("Générer PDF")
        for b in (btn_done, btn_cancel, btn_del): bar.addWidget(b)
        bar.addStretch(1); bar.addWidget(btn_pdf)
        root.addLayout(bar)

        self.tbl_deliveries = _table(["Numéro", "Client", "Date", "Statut", "Livré le", "Chauffeur", "ID"])
        root.addWidget(self.tbl_deliveries, 1)

        deliveries = self.workflow.deliveries
        btn_done.clicked.connect(lambda: self._delivery_action(deliveries.mark_delivered))
        btn_cancel.clicked.connect(lambda: self._delivery_action(deliveries.cancel))
        btn_del.clicked.connect(lambda: self._delivery_action(deliveries.delete_note))
        btn_pdf.clicked.connect(self._delivery_pdf)

        self._refresh_deliveries()
        return w

    def _refresh_deliveries(self):
        _fill(self.tbl_deliveries, [
            [n.number or "—", self._client_name(n.client_id), n.issue_date.isoformat(),
             DELIVERY_STATUS_LABELS.get(n.status, n.status),
             n.delivery_date.isoformat() if n.delivery_date else "—", n.driver_name or "", n.id]
            for n in self.workflow.deliveries.list_notes()
        ])

    def _delivery_action(self, fn: Callable[[str], object]):
        nid = _selected_id(self.tbl_deliveries)
        if not nid:
            QMessageBox.information(self, "Livraisons", "Sélectionne un bon de livraison."); return
        self._run("Livraison", fn, nid)
        self._refresh_deliveries()

    def _delivery_pdf(self):
        nid = _selected_id(self.tbl_deliveries)
        note = self.workflow.deliveries.get_by_id(nid) if nid else None
        if not note:
            QMessageBox.information(self, "Livraisons", "Sélectionne un bon de livraison."); return
        self._export(note)

    # ==================== CRÉANCES ====================
    def _debts_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        self.tbl_debts = _table(["Client", "Dette", "Factures impayées", "ID"])
        root.addWidget(self.tbl_debts, 1)

        grp = QGroupBox("Détail"); lay = QVBoxLayout(grp)
        self.lbl_debt_detail = QLabel("–")
        lay.addWidget(self.lbl_debt_detail)
        self.tbl_debt_invoices = _table(["Numéro", "Date", "Statut", "Total", "Payé", "Reste", "ID"])
        lay.addWidget(self.tbl_debt_invoices)
        root.addWidget(grp, 1)

        self.tbl_debts.itemSelectionChanged.connect(self._on_debt_selected)
        self._refresh_debts()
        return w

    def _refresh_debts(self):
        _fill(self.tbl_debts, [
            [d.client.name, format_money(d.total_debt_cent), str(d.unpaid_count), d.client.id]
            for d in self.workflow.reports.client_debts()
        ])
        self._on_debt_selected()

    def _on_debt_selected(self):
        cid = _selected_id(self.tbl_debts)
        if not cid:
            self.lbl_debt_detail.setText("–")
            self.tbl_debt_invoices.setRowCount(0)
            return
        d = self._run("Créances", self.workflow.reports.client_debt_detail, cid)
        if not d:
            return
        self.lbl_debt_detail.setText(
            f"{d.client.name} | Facturé: {format_money(d.total_invoiced_cent)} | "
            f"Payé: {format_money(d.total_paid_cent)} | Reste: {format_money(d.total_debt_cent)}"
        )
        _fill(self.tbl_debt_invoices, [
            [i.number or "—", i.issue_date.isoformat(), FINAL_STATUS_LABELS.get(i.status, i.status),
             format_money(i.total_cent), format_money(i.amount_paid_cent), format_money(i.client_debt_cent), i.id]
            for i in d.invoices
        ])

    # ==================== ÉTAT 104 ====================
    def _etat104_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        today = date.today()
        self.sp_year = QSpinBox(); self.sp_year.setRange(2000, 2100); self.sp_year.setValue(today.year)
        self.sp_month = QSpinBox(); self.sp_month.setRange(1, 12); self.sp_month.setValue(today.month)
        btn = QPushButton("Calculer")
        bar.addWidget(QLabel("Année")); bar.addWidget(self.sp_year)
        bar.addWidget(QLabel("Mois")); bar.addWidget(self.sp_month)
        bar.addWidget(btn); bar.addStretch(1)
        root.addLayout(bar)

        self.tbl_etat104 = _table(["Client", "NIF", "HT", "TVA", "TTC", "ID"])
        root.addWidget(self.tbl_etat104, 1)
        self.lbl_etat104 = QLabel("–")
        root.addWidget(self.lbl_etat104)

        btn.clicked.connect(self._refresh_etat104)
        return w

    def _refresh_etat104(self):
        year, month = self.sp_year.value(), self.sp_month.value()
        rep = self._run("État 104", self.workflow.reports.etat_104, year, month)
        if not rep:
            return
        _fill(self.tbl_etat104, [
            [r.client_name, r.taxid, format_money(r.subtotal_cent), format_money(r.tax_total_cent),
             format_money(r.total_cent), r.client_id]
            for r in rep.rows
        ])
        self.lbl_etat104.setText(
            f"{MONTHS[month - 1]} {year} | HT: {format_money(rep.subtotal_cent)} | "
            f"TVA: {format_money(rep.tax_total_cent)} | TTC: {format_money(rep.total_cent)}"
        )

    # ==================== PARAMÈTRES ====================
    def _settings_tab(self):
        w = QWidget(); lay = QVBoxLayout(w)
        s = self.workflow.settings
        lay.addWidget(QLabel(f"Paramètres: {s.settings_path}"))
        lay.addWidget(QLabel(f"Données: {s.data_dir}"))
        lay.addWidget(QLabel(f"Exports PDF: {s.exports_dir}"))
        btn_open = QPushButton("Ouvrir dossier data…")
        btn_open.clicked.connect(lambda: QFileDialog.getOpenFileName(self, "Ouvrir un fichier", str(s.data_dir)))
        lay.addWidget(btn_open)
        lay.addStretch(1)
        return w


def run() -> int:
    settings = load_settings()
    configure_logging(settings)
    app = QApplication(sys.argv)
    workflow = WorkflowService(settings, Permissions.for_user(User(id="local", role=UserRole.ADMIN)))
    win = MainWindow(workflow)
    win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(run())
