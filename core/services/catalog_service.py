from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from core.errors import BusinessRuleError
from core.models.invoice import InvoiceItem
from core.models.product import Product
from core.services.base import TableService
from core.services.calculator import compute_item
from core.services.permissions import Capability

logger = logging.getLogger(__name__)


class CatalogService(TableService[Product]):
    """
    Catalogue produits.
    - Accepte des Product ou des payloads dict (formulaires, imports)
    - Normalise le prix en centimes (unit_price_cent int >= 0)
    """

    table_name = "products"
    model = Product
    entity_label = "Produit"

    # ---------- Helpers (prix & normalisation) ---------- #

    @staticmethod
    def _parse_price_to_cents(payload: Mapping[str, Any]) -> int:
        """
        Accepte:
          - unit_price_cent (int)
          - unitprice / unit_price / price (str/float en DA, ex "18,50" → 1850)
        Retourne un int >= 0
        """
        v = payload.get("unit_price_cent")
        if v not in (None, ""):
            return max(0, int(v))

        for k in ("unitprice", "unit_price", "price"):
            v = payload.get(k)
            if v is None:
                continue
            s = str(v).strip().replace(" ", "").replace(",", ".")
            if s == "":
                continue
            try:
                return max(0, int(round(float(s) * 100)))
            except ValueError:
                raise BusinessRuleError(f"Prix invalide: {v!r}") from None
        return 0

    def _to_product(self, p: Union[Product, Mapping[str, Any]]) -> Product:
        if isinstance(p, Product):
            return p
        payload: Dict[str, Any] = dict(p)
        if not payload.get("id"):
            payload.pop("id", None)
        payload["unit_price_cent"] = self._parse_price_to_cents(payload)
        if payload.get("unit") is None:
            payload["unit"] = ""
        return Product.model_validate(payload)

    # ---------- Produits ---------- #

    def list_products(self) -> List[Product]:
        return self._list()

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._get(product_id)

    def require_product(self, product_id: str) -> Product:
        return self._require(product_id)

    def find_by_code(self, code: str) -> Optional[Product]:
        code = (code or "").strip()
        for p in self._find("code", code):
            return p
        return None

    def add_product(self, p: Union[Product, Mapping[str, Any]]) -> Product:
        self.permissions.require(Capability.EDIT)
        product = self._to_product(p)
        self.repo.add(product)
        logger.info("produit créé %s (%s)", product.id, product.code)
        return product

    def update_product(self, p: Union[Product, Mapping[str, Any]]) -> Product:
        self.permissions.require(Capability.EDIT)
        product = self._to_product(p)
        self._require(product.id)
        product.touch()
        self.repo.update(product)
        return product

    def delete_product(self, product_id: str) -> bool:
        self.permissions.require(Capability.EDIT)
        return self.repo.delete(product_id)

    def adjust_stock(self, product_id: str, delta: int) -> Product:
        """Entrée (+) / sortie (-) de stock ; le stock ne descend jamais sous zéro."""
        self.permissions.require(Capability.EDIT)
        with self.store.transaction():
            product = self._require(product_id)
            new_qty = product.stock_quantity + int(delta)
            if new_qty < 0:
                raise BusinessRuleError(
                    f"Stock insuffisant pour {product.code}: {product.stock_quantity} disponible(s)"
                )
            product = product.model_copy(update={"stock_quantity": new_qty})
            product.touch()
            self.repo.update(product)
        return product

    def make_item(self, product_id: str, quantity: int = 1, discount_pct: float = 0.0) -> InvoiceItem:
        """Ligne de document à partir du catalogue (prix et TVA figés au moment de la saisie)."""
        product = self._require(product_id)
        return compute_item(InvoiceItem(
            product_id=product.id,
            name=product.name,
            unit=product.unit,
            quantity=quantity,
            unit_price_cent=product.unit_price_cent,
            tax_rate=product.tax_rate,
            discount_pct=discount_pct,
        ))
