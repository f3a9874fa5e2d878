from __future__ import annotations
from typing import Any, Dict, Optional

from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QFormLayout, QLineEdit, QTextEdit,
    QPushButton, QWidget, QDoubleSpinBox, QSpinBox
)

from core.models.product import Product


class ProductForm(QDialog):
    """
    Formulaire produit.
    - Prix saisi en DA (texte, virgule acceptée), converti en centimes par CatalogService.
    - Retourne un dict prêt pour CatalogService.add_product / update_product.
    """
    def __init__(self, parent: Optional[QWidget] = None, product: Optional[Product] = None):
        super().__init__(parent)
        self.setWindowTitle("Produit")
        self.product = product

        self.ed_code = QLineEdit()
        self.ed_name = QLineEdit()
        self.ed_desc = QTextEdit()
        self.ed_unit = QLineEdit()
        self.ed_price = QLineEdit()
        self.ed_price.setPlaceholderText("ex: 1 850,00")
        self.sp_tax = QDoubleSpinBox(); self.sp_tax.setRange(0.0, 100.0); self.sp_tax.setSuffix(" %"); self.sp_tax.setValue(19.0)
        self.sp_stock = QSpinBox(); self.sp_stock.setRange(0, 10_000_000)

        if product:
            self._populate(product)

        form = QFormLayout()
        form.addRow("Code*", self.ed_code)
        form.addRow("Désignation*", self.ed_name)
        form.addRow("Prix unitaire HT (DA)", self.ed_price)
        form.addRow("TVA", self.sp_tax)
        form.addRow("Unité", self.ed_unit)
        form.addRow("Stock", self.sp_stock)
        form.addRow("Description", self.ed_desc)

        btn_ok = QPushButton("Valider")
        btn_cancel = QPushButton("Annuler")
        btn_ok.clicked.connect(self.accept)
        btn_cancel.clicked.connect(self.reject)
        bar = QHBoxLayout()
        bar.addStretch(1)
        bar.addWidget(btn_cancel)
        bar.addWidget(btn_ok)

        root = QVBoxLayout(self)
        root.addLayout(form)
        root.addLayout(bar)

        # ENTER valide
        self.ed_code.returnPressed.connect(btn_ok.click)
        self.ed_name.returnPressed.connect(btn_ok.click)
        self.ed_price.returnPressed.connect(btn_ok.click)
        self.resize(520, 420)

    def _populate(self, p: Product) -> None:
        self.ed_code.setText(p.code)
        self.ed_name.setText(p.name)
        self.ed_desc.setPlainText(p.description or "")
        self.ed_unit.setText(p.unit or "")
        self.ed_price.setText(f"{p.unit_price_cent / 100:.2f}".replace(".", ","))
        self.sp_tax.setValue(p.tax_rate)
        self.sp_stock.setValue(p.stock_quantity)

    def get_item(self) -> Optional[Dict[str, Any]]:
        code = self.ed_code.text().strip()
        name = self.ed_name.text().strip()
        if not code or not name:
            return None

        payload: Dict[str, Any] = {
            "code": code,
            "name": name,
            "description": self.ed_desc.toPlainText().strip() or None,
            "unit": self.ed_unit.text().strip(),
            "unit_price": self.ed_price.text(),
            "tax_rate": float(self.sp_tax.value()),
            "stock_quantity": int(self.sp_stock.value()),
        }
        if self.product:
            # conserve l'id et la date de création en édition
            payload["id"] = self.product.id
            payload["created_at"] = self.product.created_at
        return payload
