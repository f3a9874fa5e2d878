from __future__ import annotations
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QComboBox, QDoubleSpinBox, QDialogButtonBox,
    QDateEdit, QLineEdit, QLabel
)
from PySide6.QtCore import QDate
from typing import Callable, NamedTuple, Optional
from datetime import date

from core.models.payment import PAYMENT_METHOD_LABELS


class PaymentInput(NamedTuple):
    method: str
    amount_cent: int
    payment_date: date
    reference: Optional[str]
    notes: Optional[str]


def _money(c: int) -> str:
    return f"{c/100:,.2f} DA".replace(",", " ").replace(".", ",")


class PaymentDialog(QDialog):
    """
    Encaissement sur une facture finale.
    Le montant est plafonné à la dette restante ; `preview` (PaymentService.preview)
    affiche le payé / reste dû après paiement.
    """
    def __init__(
        self,
        parent=None,
        debt_cent: int = 0,
        preview: Optional[Callable[[int], tuple]] = None,
    ):
        super().__init__(parent)
        self.setWindowTitle("Encaissement")
        self.setModal(True)
        self.debt_cent = debt_cent
        self._preview = preview

        self.cb_method = QComboBox()
        for key, label in PAYMENT_METHOD_LABELS.items():
            self.cb_method.addItem(label, key)
        self.cb_method.setCurrentIndex(max(0, self.cb_method.findData("bank_transfer")))

        self.sp_amount = QDoubleSpinBox()
        self.sp_amount.setRange(0, debt_cent / 100.0)
        self.sp_amount.setDecimals(2)
        self.sp_amount.setValue(debt_cent / 100.0)

        self.dt_paid = QDateEdit()
        self.dt_paid.setCalendarPopup(True)
        self.dt_paid.setDate(QDate.currentDate())

        self.ed_reference = QLineEdit()
        self.ed_notes = QLineEdit()
        self.lbl_preview = QLabel()

        form = QFormLayout()
        form.addRow("Reste dû", QLabel(_money(debt_cent)))
        form.addRow("Moyen de paiement", self.cb_method)
        form.addRow("Montant (DA)", self.sp_amount)
        form.addRow("Date du paiement", self.dt_paid)
        form.addRow("Référence", self.ed_reference)
        form.addRow("Notes", self.ed_notes)
        form.addRow("Après paiement", self.lbl_preview)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(btns)

        self.sp_amount.valueChanged.connect(self._refresh_preview)
        self._refresh_preview()

    def _amount_cent(self) -> int:
        return int(round(float(self.sp_amount.value()) * 100))

    def _refresh_preview(self):
        if not self._preview:
            return
        _, paid, debt = self._preview(self._amount_cent())
        self.lbl_preview.setText(f"Payé : {_money(paid)} | Reste : {_money(debt)}")

    def get_payment(self) -> PaymentInput:
        return PaymentInput(
            method=self.cb_method.currentData(),
            amount_cent=self._amount_cent(),
            payment_date=self.dt_paid.date().toPython(),
            reference=self.ed_reference.text().strip() or None,
            notes=self.ed_notes.text().strip() or None,
        )
