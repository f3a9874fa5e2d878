from __future__ import annotations
from typing import List, Optional, Type, Union
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QComboBox, QTextEdit, QDialogButtonBox,
    QHBoxLayout, QPushButton, QTableWidget, QTableWidgetItem, QHeaderView,
    QDoubleSpinBox, QSpinBox, QLabel, QDateEdit, QLineEdit, QCheckBox
)
from PySide6.QtCore import QDate

from core.models.invoice import FinalInvoice, InvoiceItem, ProformaInvoice
from core.services.calculator import compute_totals
from core.services.document_service import format_money
from core.services.workflow_service import WorkflowService

EditableDocument = Union[ProformaInvoice, FinalInvoice]

PAYMENT_TYPES = [
    ("", "—"),
    ("cash", "Espèces"),
    ("cheque", "Chèque"),
    ("bank_transfer", "Virement"),
    ("card", "Carte"),
    ("other", "Autre"),
]


class _AddLineDialog(QDialog):
    """Sélecteur d'article du catalogue."""
    def __init__(self, parent=None, workflow: WorkflowService | None = None):
        super().__init__(parent)
        self.setWindowTitle("Ajouter une ligne")
        self.setModal(True)
        self.catalog = workflow.catalog

        self.cb_item = QComboBox()
        for p in self.catalog.list_products():
            self.cb_item.addItem(f"{p.code} — {p.name} ({format_money(p.unit_price_cent)})", p.id)
        self.sp_qty = QSpinBox(); self.sp_qty.setRange(1, 1_000_000); self.sp_qty.setValue(1)
        self.sp_discount = QDoubleSpinBox(); self.sp_discount.setRange(0.0, 100.0); self.sp_discount.setSuffix(" %")
        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)

        form = QFormLayout()
        form.addRow("Article", self.cb_item)
        form.addRow("Quantité", self.sp_qty)
        form.addRow("Remise", self.sp_discount)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(btns)

        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

    def get_line(self) -> Optional[InvoiceItem]:
        product_id = self.cb_item.currentData()
        if not product_id:
            return None
        return self.catalog.make_item(product_id, int(self.sp_qty.value()), float(self.sp_discount.value()))


class DocumentEditor(QDialog):
    """Saisie d'une proforma ou d'une facture finale (client, lignes, paiement)."""

    def __init__(
        self,
        parent=None,
        workflow: WorkflowService | None = None,
        document: Optional[EditableDocument] = None,
        model: Type[EditableDocument] = ProformaInvoice,
    ):
        super().__init__(parent)
        self.workflow = workflow
        self.model = type(document) if document else model
        self.setWindowTitle("Proforma" if self.model is ProformaInvoice else "Facture")
        self.setModal(True)

        self.cb_client = QComboBox()
        self.cb_payment = QComboBox()
        for key, label in PAYMENT_TYPES:
            self.cb_payment.addItem(label, key)
        self.ck_due = QCheckBox("Échéance")
        self.ed_due_date = QDateEdit(); self.ed_due_date.setCalendarPopup(True); self.ed_due_date.setDate(QDate.currentDate())
        self.ed_bc = QLineEdit()
        self.ed_notes = QTextEdit()

        self.lab_total = QLabel()

        self.tbl = QTableWidget(0, 6)
        self.tbl.setHorizontalHeaderLabels(["Désignation", "Qté", "PU HT", "TVA", "Remise", "Total TTC"])
        self.tbl.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        self.tbl.setSelectionBehavior(self.tbl.SelectionBehavior.SelectRows)
        self.tbl.setEditTriggers(self.tbl.EditTrigger.NoEditTriggers)

        btn_add = QPushButton("Ajouter une ligne")
        btn_del = QPushButton("Supprimer la ligne")
        btn_add.clicked.connect(self._add_line)
        btn_del.clicked.connect(self._del_line)

        top = QFormLayout()
        top.addRow("Client", self.cb_client)
        top.addRow("Mode de paiement", self.cb_payment)
        top.addRow(self.ck_due, self.ed_due_date)
        top.addRow("Bon de commande", self.ed_bc)
        top.addRow("Notes", self.ed_notes)

        bar = QHBoxLayout()
        bar.addWidget(btn_add); bar.addWidget(btn_del); bar.addStretch(1); bar.addWidget(self.lab_total)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(top)
        lay.addLayout(bar)
        lay.addWidget(self.tbl)
        lay.addWidget(btns)

        self._orig = document
        self._lines: List[InvoiceItem] = []
        for c in self.workflow.clients.list_clients():
            self.cb_client.addItem(f"{c.name} ({c.taxid or '—'})", c.id)

        # le droit de timbre dépend du mode de paiement
        self.cb_payment.currentIndexChanged.connect(self._update_totals)

        if document:
            self._fill_from(document)
        else:
            self._update_totals()

    def _fill_from(self, d: EditableDocument):
        self.cb_client.setCurrentIndex(max(0, self.cb_client.findData(d.client_id)))
        self.cb_payment.setCurrentIndex(max(0, self.cb_payment.findData(d.payment_type or "")))
        if d.due_date:
            self.ck_due.setChecked(True)
            self.ed_due_date.setDate(QDate(d.due_date.year, d.due_date.month, d.due_date.day))
        self.ed_bc.setText(d.bc or "")
        self.ed_notes.setPlainText(d.notes or "")
        self._lines = [ln.model_copy(deep=True) for ln in d.items]
        self._refresh_table()

    def _refresh_table(self):
        self.tbl.setRowCount(0)
        for ln in self._lines:
            r = self.tbl.rowCount()
            self.tbl.insertRow(r)
            self.tbl.setItem(r, 0, QTableWidgetItem(ln.name))
            self.tbl.setItem(r, 1, QTableWidgetItem(str(ln.quantity)))
            self.tbl.setItem(r, 2, QTableWidgetItem(format_money(ln.unit_price_cent)))
            self.tbl.setItem(r, 3, QTableWidgetItem(f"{ln.tax_rate:g} %"))
            self.tbl.setItem(r, 4, QTableWidgetItem(f"{ln.discount_pct:g} %"))
            self.tbl.setItem(r, 5, QTableWidgetItem(format_money(ln.total_cent)))
        self.tbl.resizeRowsToContents()
        self._update_totals()

    def _update_totals(self):
        _, t = compute_totals(self._lines, self.cb_payment.currentData() or None, self.workflow.invoices.brackets)
        text = f"HT : {format_money(t.subtotal_cent)} | TVA : {format_money(t.tax_total_cent)}"
        if t.stamp_tax_cent:
            text += f" | Timbre : {format_money(t.stamp_tax_cent)}"
        self.lab_total.setText(text + f" | TTC : {format_money(t.total_cent)}")

    def _add_line(self):
        dlg = _AddLineDialog(self, self.workflow)
        if dlg.exec() == QDialog.Accepted:
            ln = dlg.get_line()
            if ln:
                self._lines.append(ln)
                self._refresh_table()

    def _del_line(self):
        row = self.tbl.currentRow()
        if row < 0: return
        del self._lines[row]
        self._refresh_table()

    def get_document(self) -> Optional[EditableDocument]:
        """Document prêt pour create_* / update_* ; les services recalculent les totaux."""
        client_id = self.cb_client.currentData()
        if not client_id:
            return None
        data = {
            "client_id": client_id,
            "payment_type": self.cb_payment.currentData() or None,
            "due_date": self.ed_due_date.date().toPython() if self.ck_due.isChecked() else None,
            "bc": self.ed_bc.text().strip() or None,
            "notes": self.ed_notes.toPlainText().strip(),
            "items": [ln.model_copy(deep=True) for ln in self._lines],
        }
        if self._orig:
            return self._orig.model_copy(update=data)
        return self.model(**data)
