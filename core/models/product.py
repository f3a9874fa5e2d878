from __future__ import annotations
from pydantic import ConfigDict, Field
from typing import Optional
from .common import TimeStamped, gen_id


class Product(TimeStamped):
  model_config = ConfigDict(extra="ignore")

  id: str = Field(default_factory=gen_id)
  code: str
  name: str
  description: Optional[str] = None
  unit_price_cent: int = Field(0, ge=0)
  tax_rate: float = Field(19.0, ge=0, le=100)  # TVA %
  stock_quantity: int = Field(0, ge=0)
  unit: str = ""
