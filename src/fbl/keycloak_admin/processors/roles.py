"""Realm and client role actions.

Composites are given by name, partitioned by scope:

    role:
      name: auditor
      composites:
        realm: [viewer]
        client:
          realm-management: [view-users]
"""

from __future__ import annotations

from fbl.keycloak_admin.client import KeycloakAdminClient
from fbl.keycloak_admin.lookups import (
    find_client,
    find_client_role,
    find_composite_roles,
    find_realm_role,
)
from fbl.keycloak_admin.models import (
    ClientRoleDeleteOptions,
    ClientRoleOptions,
    RealmRoleDeleteOptions,
    RealmRoleOptions,
    ResolvedRoles,
)
from fbl.keycloak_admin.processors.base import ACTION_ID_PREFIX, ActionProcessor
from fbl.keycloak_admin.reconcile import add_composite_roles, sync_role_composites
from fbl.keycloak_admin.remote import wrap_request


class RealmRoleCreateActionProcessor(ActionProcessor[RealmRoleOptions]):
    """Create a realm role and attach its composites.

    Composites are resolved before the role exists and attached right after
    creation, without re-reading the new role's composites.
    """

    action_id = ACTION_ID_PREFIX + "realm.role.create"
    aliases = ("keycloak.realm.role.create",)
    options_model = RealmRoleOptions

    async def process(self, admin: KeycloakAdminClient, params: RealmRoleOptions) -> None:
        realm = params.realm_name
        role = params.role

        composites: ResolvedRoles | None = None
        if role.composites is not None:
            composites = await find_composite_roles(admin, self.snapshot, realm, role.composites)

        self.snapshot.log(f"[realm={realm}] [role={role.name}] Creating realm role.")
        representation = role.to_representation(exclude={"composites"})
        await wrap_request(lambda: admin.create_realm_role(realm, representation))

        parent = await find_realm_role(admin, self.snapshot, realm, role.name)
        if composites is not None:
            await add_composite_roles(admin, self.snapshot, realm, parent, composites.flatten())
        self.snapshot.log(f"[realm={realm}] [role={role.name}] Realm role successfully created.")


class RealmRoleUpdateActionProcessor(ActionProcessor[RealmRoleOptions]):
    """Update a realm role; composites, when given, replace the current ones."""

    action_id = ACTION_ID_PREFIX + "realm.role.update"
    aliases = ("keycloak.realm.role.update",)
    options_model = RealmRoleOptions

    async def process(self, admin: KeycloakAdminClient, params: RealmRoleOptions) -> None:
        realm = params.realm_name
        role = params.role
        existing = await find_realm_role(admin, self.snapshot, realm, role.name)

        self.snapshot.log(f"[realm={realm}] [role={role.name}] Updating realm role.")
        representation = {**existing, **role.to_representation(exclude={"composites"})}
        await wrap_request(lambda: admin.update_realm_role(realm, role.name, representation))

        if role.composites is not None:
            await sync_role_composites(admin, self.snapshot, realm, existing, role.composites)
        self.snapshot.log(f"[realm={realm}] [role={role.name}] Realm role successfully updated.")


class RealmRoleDeleteActionProcessor(ActionProcessor[RealmRoleDeleteOptions]):
    action_id = ACTION_ID_PREFIX + "realm.role.delete"
    aliases = ("keycloak.realm.role.delete",)
    options_model = RealmRoleDeleteOptions

    async def process(self, admin: KeycloakAdminClient, params: RealmRoleDeleteOptions) -> None:
        realm = params.realm_name
        self.snapshot.log(f"[realm={realm}] [role={params.role_name}] Deleting realm role.")
        await wrap_request(lambda: admin.delete_realm_role(realm, params.role_name))
        self.snapshot.log(
            f"[realm={realm}] [role={params.role_name}] Realm role successfully deleted."
        )


class ClientRoleCreateActionProcessor(ActionProcessor[ClientRoleOptions]):
    """Create a client role and attach its composites."""

    action_id = ACTION_ID_PREFIX + "client.role.create"
    aliases = ("keycloak.client.role.create",)
    options_model = ClientRoleOptions

    async def process(self, admin: KeycloakAdminClient, params: ClientRoleOptions) -> None:
        realm = params.realm_name
        role = params.role
        client = await find_client(admin, self.snapshot, realm, params.client_id)

        composites: ResolvedRoles | None = None
        if role.composites is not None:
            composites = await find_composite_roles(admin, self.snapshot, realm, role.composites)

        prefix = f"[realm={realm}] [clientId={params.client_id}] [role={role.name}]"
        self.snapshot.log(f"{prefix} Creating client role.")
        representation = role.to_representation(exclude={"composites"})
        await wrap_request(lambda: admin.create_client_role(realm, client["id"], representation))

        parent = await find_client_role(admin, self.snapshot, realm, client, role.name)
        if composites is not None:
            await add_composite_roles(admin, self.snapshot, realm, parent, composites.flatten())
        self.snapshot.log(f"{prefix} Client role successfully created.")


class ClientRoleUpdateActionProcessor(ActionProcessor[ClientRoleOptions]):
    action_id = ACTION_ID_PREFIX + "client.role.update"
    aliases = ("keycloak.client.role.update",)
    options_model = ClientRoleOptions

    async def process(self, admin: KeycloakAdminClient, params: ClientRoleOptions) -> None:
        realm = params.realm_name
        role = params.role
        client = await find_client(admin, self.snapshot, realm, params.client_id)
        existing = await find_client_role(admin, self.snapshot, realm, client, role.name)

        prefix = f"[realm={realm}] [clientId={params.client_id}] [role={role.name}]"
        self.snapshot.log(f"{prefix} Updating client role.")
        representation = {**existing, **role.to_representation(exclude={"composites"})}
        await wrap_request(
            lambda: admin.update_client_role(realm, client["id"], role.name, representation)
        )

        if role.composites is not None:
            await sync_role_composites(admin, self.snapshot, realm, existing, role.composites)
        self.snapshot.log(f"{prefix} Client role successfully updated.")


class ClientRoleDeleteActionProcessor(ActionProcessor[ClientRoleDeleteOptions]):
    action_id = ACTION_ID_PREFIX + "client.role.delete"
    aliases = ("keycloak.client.role.delete",)
    options_model = ClientRoleDeleteOptions

    async def process(self, admin: KeycloakAdminClient, params: ClientRoleDeleteOptions) -> None:
        realm = params.realm_name
        client = await find_client(admin, self.snapshot, realm, params.client_id)

        prefix = f"[realm={realm}] [clientId={params.client_id}] [role={params.role_name}]"
        self.snapshot.log(f"{prefix} Deleting client role.")
        await wrap_request(
            lambda: admin.delete_client_role(realm, client["id"], params.role_name)
        )
        self.snapshot.log(f"{prefix} Client role successfully deleted.")
