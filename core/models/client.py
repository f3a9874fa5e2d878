from pydantic import ConfigDict, EmailStr, Field, field_validator
from .common import TimeStamped, gen_id

class Client(TimeStamped):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    name: str = Field(min_length=1)
    address: str = ""
    city: str = ""
    country: str = ""
    phone: str = ""
    email: EmailStr | None = None
    taxid: str = ""  # NIF
    rc: str | None = None  # registre de commerce
    nis: str | None = None
    ai: str | None = None  # article d'imposition
    rib: str | None = None
    ccp: str | None = None
    contact: str | None = None
    telcontact: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
