"""Action processors, one per verb."""

from fbl.keycloak_admin.processors.base import ACTION_ID_PREFIX, ActionProcessor
from fbl.keycloak_admin.processors.groups import (
    GroupCreateActionProcessor,
    GroupDeleteActionProcessor,
    GroupRoleMappingsApplyActionProcessor,
    GroupUpdateActionProcessor,
)
from fbl.keycloak_admin.processors.roles import (
    ClientRoleCreateActionProcessor,
    ClientRoleDeleteActionProcessor,
    ClientRoleUpdateActionProcessor,
    RealmRoleCreateActionProcessor,
    RealmRoleDeleteActionProcessor,
    RealmRoleUpdateActionProcessor,
)
from fbl.keycloak_admin.processors.users import (
    UserCreateActionProcessor,
    UserDeleteActionProcessor,
    UserRoleMappingsApplyActionProcessor,
    UserUpdateActionProcessor,
)

__all__ = [
    "ACTION_ID_PREFIX",
    "ActionProcessor",
    "UserCreateActionProcessor",
    "UserUpdateActionProcessor",
    "UserDeleteActionProcessor",
    "UserRoleMappingsApplyActionProcessor",
    "GroupCreateActionProcessor",
    "GroupUpdateActionProcessor",
    "GroupDeleteActionProcessor",
    "GroupRoleMappingsApplyActionProcessor",
    "RealmRoleCreateActionProcessor",
    "RealmRoleUpdateActionProcessor",
    "RealmRoleDeleteActionProcessor",
    "ClientRoleCreateActionProcessor",
    "ClientRoleUpdateActionProcessor",
    "ClientRoleDeleteActionProcessor",
]
