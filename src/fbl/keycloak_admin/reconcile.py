"""Role mapping reconciliation.

Mutations are computed against a snapshot fetched by the caller rather than
applied blindly, so that:

- re-applying the same desired state issues no remote call,
- removing a role that is not assigned is a no-op,
- each add or remove costs exactly one round-trip, however many names it covers.

The snapshot is only valid for one fetch-then-mutate cycle. Callers that chain
several mutations on the same principal must keep the partitions they touch
disjoint (see RoleMappingsApplyOptions) or fetch again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

from fbl.keycloak_admin.client import KeycloakAdminClient
from fbl.keycloak_admin.logs import ActionSnapshot
from fbl.keycloak_admin.lookups import (
    find_client,
    find_composite_roles,
    find_role_composites,
    get_client_roles,
    get_realm_roles,
)
from fbl.keycloak_admin.models import CompositeRoleMapping, ResolvedRoles
from fbl.keycloak_admin.remote import wrap_request

# (realm, principal id, roles)
RealmMappingCall = Callable[[str, str, list[dict[str, Any]]], Awaitable[None]]
# (realm, principal id, client uuid, roles)
ClientMappingCall = Callable[[str, str, str, list[dict[str, Any]]], Awaitable[None]]


@dataclass(frozen=True)
class Principal:
    """A user or a group whose role mappings are reconciled."""

    kind: Literal["user", "group"]
    id: str
    name: str

    @classmethod
    def of_user(cls, user: dict[str, Any]) -> "Principal":
        return cls(kind="user", id=user["id"], name=user["username"])

    @classmethod
    def of_group(cls, group: dict[str, Any]) -> "Principal":
        return cls(kind="group", id=group["id"], name=group["path"])

    @property
    def label(self) -> str:
        key = "username" if self.kind == "user" else "groupPath"
        return f"[{key}={self.name}]"

    def realm_mapping_calls(
        self, admin: KeycloakAdminClient
    ) -> tuple[RealmMappingCall, RealmMappingCall]:
        """(add, delete) realm role mapping calls for this principal."""
        calls = {
            "user": (admin.add_user_realm_role_mappings, admin.delete_user_realm_role_mappings),
            "group": (
                admin.add_group_realm_role_mappings,
                admin.delete_group_realm_role_mappings,
            ),
        }
        return calls[self.kind]

    def client_mapping_calls(
        self, admin: KeycloakAdminClient
    ) -> tuple[ClientMappingCall, ClientMappingCall]:
        """(add, delete) client role mapping calls for this principal."""
        calls = {
            "user": (
                admin.add_user_client_role_mappings,
                admin.delete_user_client_role_mappings,
            ),
            "group": (
                admin.add_group_client_role_mappings,
                admin.delete_group_client_role_mappings,
            ),
        }
        return calls[self.kind]


def _subtract(names: list[str], existing: list[str]) -> list[str]:
    return [n for n in names if n not in existing]


def _intersect(existing: list[str], names: list[str]) -> list[str]:
    # Keeps snapshot order: only roles actually assigned are removed.
    return [n for n in existing if n in names]


# -----------------------------------------------------------------------------
# Client-scoped mappings
# -----------------------------------------------------------------------------


async def _add_client_role_mappings(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    principal: Principal,
    client: dict[str, Any],
    roles_to_add: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    client_id = client["clientId"]
    roles_to_add = _subtract(roles_to_add, mappings.client_roles(client_id))
    if not roles_to_add:
        return

    roles = await get_client_roles(admin, snapshot, realm, client, roles_to_add)
    if not roles:
        return

    names = ", ".join(r["name"] for r in roles)
    snapshot.log(
        f"[realm={realm}] [clientId={client_id}] {principal.label} "
        f"Adding client role mappings for: {names}"
    )
    add, _ = principal.client_mapping_calls(admin)
    await wrap_request(lambda: add(realm, principal.id, client["id"], roles))
    snapshot.log(
        f"[realm={realm}] [clientId={client_id}] {principal.label} "
        f"Added client role mappings for: {names}"
    )


async def _delete_client_role_mappings(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    principal: Principal,
    client: dict[str, Any],
    roles_to_remove: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    client_id = client["clientId"]
    roles_to_remove = _intersect(mappings.client_roles(client_id), roles_to_remove)
    if not roles_to_remove:
        return

    names = ", ".join(roles_to_remove)
    snapshot.log(
        f"[realm={realm}] [clientId={client_id}] {principal.label} "
        f"Removing client role mappings for: {names}"
    )
    roles = await get_client_roles(admin, snapshot, realm, client, roles_to_remove)
    if not roles:
        return

    _, delete = principal.client_mapping_calls(admin)
    await wrap_request(lambda: delete(realm, principal.id, client["id"], roles))
    snapshot.log(
        f"[realm={realm}] [clientId={client_id}] {principal.label} "
        f"Removed client role mappings for: {names}"
    )


async def add_client_role_mappings_for_user(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    user: dict[str, Any],
    client: dict[str, Any],
    roles_to_add: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    """Assign client roles to a user, skipping roles already assigned."""
    await _add_client_role_mappings(
        admin, snapshot, realm, Principal.of_user(user), client, roles_to_add, mappings
    )


async def delete_client_role_mappings_for_user(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    user: dict[str, Any],
    client: dict[str, Any],
    roles_to_remove: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    """Unassign client roles from a user, ignoring roles not assigned."""
    await _delete_client_role_mappings(
        admin, snapshot, realm, Principal.of_user(user), client, roles_to_remove, mappings
    )


async def add_client_role_mappings_for_group(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    group: dict[str, Any],
    client: dict[str, Any],
    roles_to_add: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    """Assign client roles to a group, skipping roles already assigned."""
    await _add_client_role_mappings(
        admin, snapshot, realm, Principal.of_group(group), client, roles_to_add, mappings
    )


async def delete_client_role_mappings_for_group(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    group: dict[str, Any],
    client: dict[str, Any],
    roles_to_remove: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    """Unassign client roles from a group, ignoring roles not assigned."""
    await _delete_client_role_mappings(
        admin, snapshot, realm, Principal.of_group(group), client, roles_to_remove, mappings
    )


# -----------------------------------------------------------------------------
# Realm-scoped mappings
# -----------------------------------------------------------------------------


async def add_realm_role_mappings(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    principal: Principal,
    roles_to_add: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    """Assign realm roles to a user or group, skipping roles already assigned."""
    roles_to_add = _subtract(roles_to_add, mappings.realm)
    if not roles_to_add:
        return

    roles = await get_realm_roles(admin, snapshot, realm, roles_to_add)
    if not roles:
        return

    names = ", ".join(r["name"] for r in roles)
    snapshot.log(f"[realm={realm}] {principal.label} Adding realm role mappings for: {names}")
    add, _ = principal.realm_mapping_calls(admin)
    await wrap_request(lambda: add(realm, principal.id, roles))
    snapshot.log(f"[realm={realm}] {principal.label} Added realm role mappings for: {names}")


async def delete_realm_role_mappings(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    principal: Principal,
    roles_to_remove: list[str],
    mappings: CompositeRoleMapping,
) -> None:
    """Unassign realm roles from a user or group, ignoring roles not assigned."""
    roles_to_remove = _intersect(mappings.realm, roles_to_remove)
    if not roles_to_remove:
        return

    names = ", ".join(roles_to_remove)
    snapshot.log(f"[realm={realm}] {principal.label} Removing realm role mappings for: {names}")
    roles = await get_realm_roles(admin, snapshot, realm, roles_to_remove)
    if not roles:
        return

    _, delete = principal.realm_mapping_calls(admin)
    await wrap_request(lambda: delete(realm, principal.id, roles))
    snapshot.log(f"[realm={realm}] {principal.label} Removed realm role mappings for: {names}")


async def apply_role_mappings(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    principal: Principal,
    add: CompositeRoleMapping,
    remove: CompositeRoleMapping,
    mappings: CompositeRoleMapping,
) -> None:
    """Apply additions and removals against a single snapshot.

    Realm partition first, then each client in name order; removals before
    additions within a partition.
    """
    await delete_realm_role_mappings(admin, snapshot, realm, principal, remove.realm, mappings)
    await add_realm_role_mappings(admin, snapshot, realm, principal, add.realm, mappings)

    for client_id in sorted(set(add.client) | set(remove.client)):
        to_remove = remove.client_roles(client_id)
        to_add = add.client_roles(client_id)
        if not to_remove and not to_add:
            continue

        client = await find_client(admin, snapshot, realm, client_id)
        await _delete_client_role_mappings(
            admin, snapshot, realm, principal, client, to_remove, mappings
        )
        await _add_client_role_mappings(
            admin, snapshot, realm, principal, client, to_add, mappings
        )


# -----------------------------------------------------------------------------
# Composite roles
# -----------------------------------------------------------------------------


async def add_composite_roles(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    parent: dict[str, Any],
    roles: list[dict[str, Any]],
) -> None:
    """Attach resolved roles as composites of ``parent``."""
    if not roles:
        return

    names = ", ".join(r["name"] for r in roles)
    snapshot.log(f"[realm={realm}] [role={parent['name']}] Adding composite roles: {names}")
    await wrap_request(lambda: admin.add_role_composites(realm, parent["id"], roles))
    snapshot.log(f"[realm={realm}] [role={parent['name']}] Added composite roles: {names}")


async def delete_composite_roles(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    parent: dict[str, Any],
    roles: list[dict[str, Any]],
) -> None:
    """Detach composites from ``parent``."""
    if not roles:
        return

    names = ", ".join(r["name"] for r in roles)
    snapshot.log(f"[realm={realm}] [role={parent['name']}] Removing composite roles: {names}")
    await wrap_request(lambda: admin.delete_role_composites(realm, parent["id"], roles))
    snapshot.log(f"[realm={realm}] [role={parent['name']}] Removed composite roles: {names}")


async def sync_role_composites(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    parent: dict[str, Any],
    desired: CompositeRoleMapping,
) -> None:
    """Make the composites of ``parent`` match ``desired`` exactly.

    At most one remove and one add call are issued.
    """
    current = await find_role_composites(admin, snapshot, realm, parent)
    current_names = current.names()

    stale = ResolvedRoles(
        realm=[r for r in current.realm if r["name"] not in desired.realm],
        client={
            client_id: [r for r in roles if r["name"] not in desired.client_roles(client_id)]
            for client_id, roles in current.client.items()
        },
    )
    missing = CompositeRoleMapping(
        realm=_subtract(desired.realm, current_names.realm),
        client={
            client_id: _subtract(names, current_names.client_roles(client_id))
            for client_id, names in desired.client.items()
        },
    )

    await delete_composite_roles(admin, snapshot, realm, parent, stale.flatten())
    if not missing.is_empty:
        resolved = await find_composite_roles(admin, snapshot, realm, missing)
        await add_composite_roles(admin, snapshot, realm, parent, resolved.flatten())
