from __future__ import annotations


class FacturationError(Exception):
    """Base de toutes les erreurs métier / stockage de l'application."""


class StorageError(FacturationError):
    """Échec d'accès au datastore (I/O, écriture impossible...)."""


class NotFoundError(FacturationError, LookupError):
    def __init__(self, entity: str, obj_id: str):
        super().__init__(f"{entity} {obj_id} introuvable")
        self.entity = entity
        self.obj_id = obj_id


class BusinessRuleError(FacturationError, ValueError):
    """Règle métier violée (paiement refusé, suppression interdite...)."""


class InvalidTransition(BusinessRuleError):
    def __init__(self, document: str, action: str, status: str):
        super().__init__(f"Action '{action}' impossible sur {document} au statut '{status}'")
        self.document = document
        self.action = action
        self.status = status


class ReferencedEntityError(BusinessRuleError):
    pass


class PermissionDenied(FacturationError):
    def __init__(self, capability: str, role: str):
        super().__init__(f"Le rôle '{role}' n'a pas la permission '{capability}'")
        self.capability = capability
        self.role = role
