from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

from core.errors import PermissionDenied
from core.models.user import User, UserRole


class Capability(str, Enum):
    EDIT = "edit"
    APPROVE = "approve"
    CONVERT = "convert"
    PAYMENTS = "payments"


DEFAULT_POLICY: Dict[Capability, Tuple[UserRole, ...]] = {
    Capability.EDIT: (UserRole.ADMIN, UserRole.ACCOUNTANT),
    Capability.APPROVE: (UserRole.ADMIN,),
    Capability.CONVERT: (UserRole.ADMIN,),
    Capability.PAYMENTS: (UserRole.ADMIN, UserRole.ACCOUNTANT),
}


def has_capability(role: Optional[UserRole], allowed_roles: Iterable[UserRole]) -> bool:
    if role is None:
        return False
    return UserRole(role) in tuple(allowed_roles)


class Permissions:
    """Droits de l'utilisateur courant, injectés dans les services."""

    def __init__(
        self,
        role: Optional[UserRole],
        user_id: Optional[str] = None,
        policy: Optional[Mapping[Capability, Iterable[UserRole]]] = None,
        checker: Callable[[Optional[UserRole], Iterable[UserRole]], bool] = has_capability,
    ) -> None:
        self.role = role
        self.user_id = user_id
        self.policy = dict(policy or DEFAULT_POLICY)
        self._checker = checker
        self._all = False

    @classmethod
    def for_user(cls, user: User, policy: Optional[Mapping[Capability, Iterable[UserRole]]] = None) -> "Permissions":
        # compte désactivé : aucun droit
        return cls(user.role if user.active else None, user_id=user.id, policy=policy)

    @classmethod
    def system(cls) -> "Permissions":
        """Contexte sans restriction (scripts, maintenance)."""
        p = cls(UserRole.ADMIN, user_id="system")
        p._all = True
        return p

    def can(self, capability: Capability) -> bool:
        if self._all:
            return True
        return self._checker(self.role, self.policy.get(capability, ()))

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            role = self.role.value if isinstance(self.role, UserRole) else str(self.role)
            raise PermissionDenied(capability.value, role)
