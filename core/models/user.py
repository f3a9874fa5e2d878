from __future__ import annotations
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class UserRole(str, Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    SALESPERSON = "salesperson"
    VIEWER = "viewer"


class User(BaseModel):
    id: str
    email: str = ""
    name: str = ""
    role: UserRole = UserRole.VIEWER
    active: bool = True
    created_at: Optional[str] = None
