from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = ROOT_DIR / "data"

logger = logging.getLogger(__name__)


class CompanyInfo(BaseModel):
    name: str = "Ma Société"
    address: str = ""
    phone: str = ""
    email: str = ""
    taxid: str = ""
    rc: str = ""
    nis: str = ""
    ai: str = ""
    rib: str = ""


class NumberingSettings(BaseModel):
    invoice_prefix: str = "F-"
    invoice_padding: int = Field(4, ge=1)
    recycle_invoice_numbers: bool = True
    proforma_prefix: str = "P"
    delivery_prefix: str = "BL"


class StampBracket(BaseModel):
    threshold: float  # en DA, borne basse exclusive
    rate: float


def _default_brackets() -> List[StampBracket]:
    return [
        StampBracket(threshold=100000, rate=0.02),
        StampBracket(threshold=30000, rate=0.015),
        StampBracket(threshold=300, rate=0.01),
    ]


class PdfSettings(BaseModel):
    wkhtmltopdf_path: Optional[str] = None


class Settings(BaseModel):
    data_dir: Path = DEFAULT_DATA_DIR
    company: CompanyInfo = Field(default_factory=CompanyInfo)
    numbering: NumberingSettings = Field(default_factory=NumberingSettings)
    stamp_duty: List[StampBracket] = Field(default_factory=_default_brackets)
    pdf: PdfSettings = Field(default_factory=PdfSettings)
    backup_enabled: bool = True
    backup_keep: int = 5
    log_level: str = "INFO"

    @property
    def settings_path(self) -> Path:
        return Path(self.data_dir) / "settings.json"

    @property
    def exports_dir(self) -> Path:
        return Path(self.data_dir).parent / "exports"


def _load_json(path: Path):
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("settings illisibles (%s): %s", path, e)
        return None


def load_settings(data_dir: Optional[os.PathLike | str] = None) -> Settings:
    """
    Charge data/settings.json puis applique les variables d'environnement :
    FACTURATION_DATA_DIR, FACTURATION_LOG_LEVEL, WKHTMLTOPDF.
    Un fichier absent ou invalide donne les valeurs par défaut.
    """
    base = Path(data_dir or os.environ.get("FACTURATION_DATA_DIR") or DEFAULT_DATA_DIR)
    raw = _load_json(base / "settings.json") or {}
    if not isinstance(raw, dict):
        raw = {}
    raw["data_dir"] = str(base)

    try:
        settings = Settings.model_validate(raw)
    except ValidationError as e:
        logger.warning("settings.json invalide, valeurs par défaut utilisées: %s", e)
        settings = Settings(data_dir=base)

    level = os.environ.get("FACTURATION_LOG_LEVEL")
    if level:
        settings.log_level = level
    wk = os.environ.get("WKHTMLTOPDF")
    if wk:
        settings.pdf.wkhtmltopdf_path = wk
    return settings


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
