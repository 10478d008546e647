"""User actions."""

from __future__ import annotations

from fbl.keycloak_admin.client import KeycloakAdminClient
from fbl.keycloak_admin.lookups import find_user, find_user_role_mappings
from fbl.keycloak_admin.models import (
    UserCreateOptions,
    UserDeleteOptions,
    UserRoleMappingsApplyOptions,
    UserUpdateOptions,
)
from fbl.keycloak_admin.processors.base import ACTION_ID_PREFIX, ActionProcessor
from fbl.keycloak_admin.reconcile import Principal, apply_role_mappings
from fbl.keycloak_admin.remote import wrap_request


class UserCreateActionProcessor(ActionProcessor[UserCreateOptions]):
    action_id = ACTION_ID_PREFIX + "user.create"
    aliases = ("keycloak.user.create",)
    options_model = UserCreateOptions

    async def process(self, admin: KeycloakAdminClient, params: UserCreateOptions) -> None:
        realm = params.realm_name
        user = params.user.to_representation()

        self.snapshot.log(f"[realm={realm}] [username={params.user.username}] Creating user.")
        await wrap_request(lambda: admin.create_user(realm, user))
        self.snapshot.log(
            f"[realm={realm}] [username={params.user.username}] User successfully created."
        )


class UserUpdateActionProcessor(ActionProcessor[UserUpdateOptions]):
    action_id = ACTION_ID_PREFIX + "user.update"
    aliases = ("keycloak.user.update",)
    options_model = UserUpdateOptions

    async def process(self, admin: KeycloakAdminClient, params: UserUpdateOptions) -> None:
        realm = params.realm_name
        existing = await find_user(admin, self.snapshot, realm, params.username)

        # Keycloak replaces the representation wholesale on PUT
        user = {**existing, **params.user.to_representation()}

        self.snapshot.log(f"[realm={realm}] [username={params.username}] Updating user.")
        await wrap_request(lambda: admin.update_user(realm, existing["id"], user))
        self.snapshot.log(f"[realm={realm}] [username={params.username}] User successfully updated.")


class UserDeleteActionProcessor(ActionProcessor[UserDeleteOptions]):
    action_id = ACTION_ID_PREFIX + "user.delete"
    aliases = ("keycloak.user.delete",)
    options_model = UserDeleteOptions

    async def process(self, admin: KeycloakAdminClient, params: UserDeleteOptions) -> None:
        realm = params.realm_name
        user = await find_user(admin, self.snapshot, realm, params.username)

        self.snapshot.log(f"[realm={realm}] [username={params.username}] Deleting user.")
        await wrap_request(lambda: admin.delete_user(realm, user["id"]))
        self.snapshot.log(f"[realm={realm}] [username={params.username}] User successfully deleted.")


class UserRoleMappingsApplyActionProcessor(ActionProcessor[UserRoleMappingsApplyOptions]):
    """Add and remove realm/client role mappings of a user."""

    action_id = ACTION_ID_PREFIX + "user.role.mappings.apply"
    aliases = ("keycloak.user.role.mappings.apply",)
    options_model = UserRoleMappingsApplyOptions

    async def process(
        self, admin: KeycloakAdminClient, params: UserRoleMappingsApplyOptions
    ) -> None:
        realm = params.realm_name
        user = await find_user(admin, self.snapshot, realm, params.username)
        mappings = await find_user_role_mappings(admin, self.snapshot, realm, user)

        await apply_role_mappings(
            admin,
            self.snapshot,
            realm,
            Principal.of_user(user),
            add=params.add,
            remove=params.remove,
            mappings=mappings,
        )
