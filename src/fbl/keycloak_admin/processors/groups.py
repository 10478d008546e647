"""Group actions."""

from __future__ import annotations

from fbl.keycloak_admin.client import KeycloakAdminClient
from fbl.keycloak_admin.lookups import find_group, find_group_role_mappings
from fbl.keycloak_admin.models import (
    GroupCreateOptions,
    GroupDeleteOptions,
    GroupRoleMappingsApplyOptions,
    GroupUpdateOptions,
)
from fbl.keycloak_admin.processors.base import ACTION_ID_PREFIX, ActionProcessor
from fbl.keycloak_admin.reconcile import Principal, apply_role_mappings
from fbl.keycloak_admin.remote import wrap_request


class GroupCreateActionProcessor(ActionProcessor[GroupCreateOptions]):
    """Create a group; nested paths are created under an existing parent."""

    action_id = ACTION_ID_PREFIX + "group.create"
    aliases = ("keycloak.group.create",)
    options_model = GroupCreateOptions

    async def process(self, admin: KeycloakAdminClient, params: GroupCreateOptions) -> None:
        realm = params.realm_name
        group = params.group
        representation = group.to_representation(exclude={"path"})
        representation["name"] = group.name

        self.snapshot.log(f"[realm={realm}] [groupPath={group.path}] Creating group.")
        if group.parent_path is None:
            await wrap_request(lambda: admin.create_group(realm, representation))
        else:
            parent = await find_group(admin, self.snapshot, realm, group.parent_path)
            await wrap_request(
                lambda: admin.create_child_group(realm, parent["id"], representation)
            )
        self.snapshot.log(f"[realm={realm}] [groupPath={group.path}] Group successfully created.")


class GroupUpdateActionProcessor(ActionProcessor[GroupUpdateOptions]):
    action_id = ACTION_ID_PREFIX + "group.update"
    aliases = ("keycloak.group.update",)
    options_model = GroupUpdateOptions

    async def process(self, admin: KeycloakAdminClient, params: GroupUpdateOptions) -> None:
        realm = params.realm_name
        existing = await find_group(admin, self.snapshot, realm, params.group_path)

        # Keycloak replaces the representation wholesale on PUT
        group = {**existing, **params.group.to_representation()}

        self.snapshot.log(f"[realm={realm}] [groupPath={params.group_path}] Updating group.")
        await wrap_request(lambda: admin.update_group(realm, existing["id"], group))
        self.snapshot.log(
            f"[realm={realm}] [groupPath={params.group_path}] Group successfully updated."
        )


class GroupDeleteActionProcessor(ActionProcessor[GroupDeleteOptions]):
    action_id = ACTION_ID_PREFIX + "group.delete"
    aliases = ("keycloak.group.delete",)
    options_model = GroupDeleteOptions

    async def process(self, admin: KeycloakAdminClient, params: GroupDeleteOptions) -> None:
        realm = params.realm_name
        group = await find_group(admin, self.snapshot, realm, params.group_path)

        self.snapshot.log(f"[realm={realm}] [groupPath={params.group_path}] Deleting group.")
        await wrap_request(lambda: admin.delete_group(realm, group["id"]))
        self.snapshot.log(
            f"[realm={realm}] [groupPath={params.group_path}] Group successfully deleted."
        )


class GroupRoleMappingsApplyActionProcessor(ActionProcessor[GroupRoleMappingsApplyOptions]):
    """Add and remove realm/client role mappings of a group."""

    action_id = ACTION_ID_PREFIX + "group.role.mappings.apply"
    aliases = ("keycloak.group.role.mappings.apply",)
    options_model = GroupRoleMappingsApplyOptions

    async def process(
        self, admin: KeycloakAdminClient, params: GroupRoleMappingsApplyOptions
    ) -> None:
        realm = params.realm_name
        group = await find_group(admin, self.snapshot, realm, params.group_path)
        mappings = await find_group_role_mappings(admin, self.snapshot, realm, group)

        await apply_role_mappings(
            admin,
            self.snapshot,
            realm,
            Principal.of_group(group),
            add=params.add,
            remove=params.remove,
            mappings=mappings,
        )
