from __future__ import annotations
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QLineEdit, QDialogButtonBox, QTabWidget, QWidget
)
from PySide6.QtCore import Qt
from typing import Optional

from core.models.client import Client


class ClientForm(QDialog):
    """Fiche client : coordonnées + identifiants fiscaux (NIF, RC, NIS, AI) et bancaires."""

    def __init__(self, parent=None, client: Optional[Client] = None):
        super().__init__(parent)
        self.setWindowTitle("Client")
        self.setModal(True)

        self.ed_name = QLineEdit()
        self.ed_address = QLineEdit()
        self.ed_city = QLineEdit()
        self.ed_country = QLineEdit()
        self.ed_phone = QLineEdit()
        self.ed_email = QLineEdit()
        self.ed_contact = QLineEdit()
        self.ed_telcontact = QLineEdit()

        self.ed_taxid = QLineEdit()
        self.ed_rc = QLineEdit()
        self.ed_nis = QLineEdit()
        self.ed_ai = QLineEdit()
        self.ed_rib = QLineEdit()
        self.ed_ccp = QLineEdit()

        general = QWidget(); form = QFormLayout(general)
        form.addRow("Raison sociale (obligatoire)", self.ed_name)
        form.addRow("Adresse", self.ed_address)
        form.addRow("Ville", self.ed_city)
        form.addRow("Pays", self.ed_country)
        form.addRow("Téléphone", self.ed_phone)
        form.addRow("Email", self.ed_email)
        form.addRow("Contact", self.ed_contact)
        form.addRow("Tél. contact", self.ed_telcontact)

        legal = QWidget(); form2 = QFormLayout(legal)
        form2.addRow("NIF", self.ed_taxid)
        form2.addRow("RC", self.ed_rc)
        form2.addRow("NIS", self.ed_nis)
        form2.addRow("Art. d'imposition", self.ed_ai)
        form2.addRow("RIB", self.ed_rib)
        form2.addRow("CCP", self.ed_ccp)

        tabs = QTabWidget()
        tabs.addTab(general, "Coordonnées")
        tabs.addTab(legal, "Identifiants")

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addWidget(tabs)
        lay.addWidget(btns)

        self._orig_client = client
        if client:
            self._fill_from_client(client)

    def _fill_from_client(self, c: Client):
        self.ed_name.setText(c.name or "")
        self.ed_address.setText(c.address or "")
        self.ed_city.setText(c.city or "")
        self.ed_country.setText(c.country or "")
        self.ed_phone.setText(c.phone or "")
        self.ed_email.setText(c.email or "")
        self.ed_contact.setText(c.contact or "")
        self.ed_telcontact.setText(c.telcontact or "")
        self.ed_taxid.setText(c.taxid or "")
        self.ed_rc.setText(c.rc or "")
        self.ed_nis.setText(c.nis or "")
        self.ed_ai.setText(c.ai or "")
        self.ed_rib.setText(c.rib or "")
        self.ed_ccp.setText(c.ccp or "")

    def _opt(self, ed: QLineEdit) -> Optional[str]:
        return ed.text().strip() or None

    def get_client(self) -> Optional[Client]:
        """
        Retourne un Client (nouveau ou mis à jour) ou None si le nom manque.
        Un email mal formé lève pydantic.ValidationError (géré par la fenêtre principale).
        """
        name = self.ed_name.text().strip()
        if not name:
            self.ed_name.setFocus(Qt.FocusReason.ActiveWindowFocusReason)
            return None

        data = {
            "name": name,
            "address": self.ed_address.text().strip(),
            "city": self.ed_city.text().strip(),
            "country": self.ed_country.text().strip(),
            "phone": self.ed_phone.text().strip(),
            "email": self._opt(self.ed_email),
            "contact": self._opt(self.ed_contact),
            "telcontact": self._opt(self.ed_telcontact),
            "taxid": self.ed_taxid.text().strip(),
            "rc": self._opt(self.ed_rc),
            "nis": self._opt(self.ed_nis),
            "ai": self._opt(self.ed_ai),
            "rib": self._opt(self.ed_rib),
            "ccp": self._opt(self.ed_ccp),
        }
        if self._orig_client:
            return Client.model_validate({**self._orig_client.model_dump(), **data})
        return Client.model_validate(data)
