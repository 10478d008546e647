"""Keycloak admin action processors for the fbl flow engine.

Each processor validates an option bag and turns it into a short sequence
of Keycloak Admin REST API calls.
"""

from fbl.keycloak_admin.client import (
    KeycloakAdminClient,
    KeycloakAuthError,
    KeycloakConflictError,
    KeycloakError,
    KeycloakNotFoundError,
    connect,
)
from fbl.keycloak_admin.credentials import Credentials
from fbl.keycloak_admin.errors import (
    ActionError,
    ActionValidationError,
    NotFoundError,
    RemoteOperationError,
)
from fbl.keycloak_admin.logs import ActionSnapshot
from fbl.keycloak_admin.models import CompositeRoleMapping
from fbl.keycloak_admin.registry import action_ids, get_processor

__all__ = [
    "KeycloakAdminClient",
    "KeycloakError",
    "KeycloakAuthError",
    "KeycloakNotFoundError",
    "KeycloakConflictError",
    "connect",
    "Credentials",
    "ActionError",
    "ActionValidationError",
    "NotFoundError",
    "RemoteOperationError",
    "ActionSnapshot",
    "CompositeRoleMapping",
    "action_ids",
    "get_processor",
]
