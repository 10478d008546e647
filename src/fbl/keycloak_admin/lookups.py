"""Resolve human-readable identifiers into Keycloak representations.

Every function takes an authenticated admin client and the invocation's
snapshot, issues its remote calls one at a time and reports progress through
the snapshot. Missing entities raise NotFoundError; empty filters do not.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from fbl.keycloak_admin.client import KeycloakAdminClient, KeycloakNotFoundError
from fbl.keycloak_admin.errors import NotFoundError
from fbl.keycloak_admin.logs import ActionSnapshot
from fbl.keycloak_admin.models import CompositeRoleMapping, ResolvedRoles
from fbl.keycloak_admin.remote import wrap_request


async def _get_or_none(fetch: Callable[[], Awaitable[Any]]) -> Any:
    """Run a single-entity fetch through the request wrapper, mapping 404 to None."""

    async def operation() -> Any:
        try:
            return await fetch()
        except KeycloakNotFoundError:
            return None

    return await wrap_request(operation)


def _filter_by_name(roles: list[dict[str, Any]], names: list[str]) -> list[dict[str, Any]]:
    # Keeps the service's order, not the order of ``names``.
    wanted = set(names)
    return [r for r in roles if r.get("name") in wanted]


def _reshape_mappings(mappings: dict[str, Any]) -> CompositeRoleMapping:
    """Turn a Keycloak role-mappings response into a CompositeRoleMapping."""
    realm = [r["name"] for r in mappings.get("realmMappings") or []]
    client: dict[str, list[str]] = {}
    for client_id, entry in (mappings.get("clientMappings") or {}).items():
        client[client_id] = [r["name"] for r in entry.get("mappings") or []]
    return CompositeRoleMapping(realm=realm, client=client)


# -----------------------------------------------------------------------------
# Realms
# -----------------------------------------------------------------------------


async def find_realm(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
) -> dict[str, Any]:
    """Load a realm by name.

    Keycloak answers 404 for every admin path under a missing realm, so
    resolving it first is the only way to tell a missing realm apart from a
    missing client, user or group.
    """
    snapshot.log(f"[realm={realm}] Looking for a realm.")
    representation = await _get_or_none(lambda: admin.get_realm(realm))

    if representation is None:
        raise NotFoundError(f'Realm "{realm}" not found')
    snapshot.log(f"[realm={realm}] Realm successfully loaded.")

    return representation


# -----------------------------------------------------------------------------
# Clients
# -----------------------------------------------------------------------------


async def find_client(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    client_id: str,
) -> dict[str, Any]:
    """Find a client by clientId; the first match wins."""
    snapshot.log(f"[realm={realm}] [clientId={client_id}] Looking for a client.")
    clients = await wrap_request(lambda: admin.find_clients(realm, client_id))

    if not clients:
        raise NotFoundError(
            f'Client with clientId "{client_id}" of realm "{realm}" not found'
        )
    snapshot.log(f"[realm={realm}] [clientId={client_id}] Client successfully loaded.")

    return clients[0]


async def get_client_roles(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    client: dict[str, Any],
    names: list[str],
) -> list[dict[str, Any]]:
    """Return the roles defined on ``client`` whose name is in ``names``."""
    snapshot.log(f"[realm={realm}] [clientId={client['clientId']}] Looking for client roles.")
    roles = await wrap_request(lambda: admin.list_client_roles(realm, client["id"]))

    filtered = _filter_by_name(roles, names)
    snapshot.log(
        f"[realm={realm}] [clientId={client['clientId']}] Found {len(filtered)} roles."
    )
    return filtered


async def find_client_role(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    client: dict[str, Any],
    name: str,
) -> dict[str, Any]:
    snapshot.log(f"[realm={realm}] [clientId={client['clientId']}] Looking for role {name}.")
    role = await _get_or_none(lambda: admin.get_client_role(realm, client["id"], name))
    if role is None:
        raise NotFoundError(
            f'Role "{name}" of client "{client["clientId"]}" in realm "{realm}" not found'
        )
    return role


# -----------------------------------------------------------------------------
# Realm roles
# -----------------------------------------------------------------------------


async def get_realm_roles(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    names: list[str],
) -> list[dict[str, Any]]:
    """Return the realm roles whose name is in ``names``."""
    snapshot.log(f"[realm={realm}] Looking for realm roles.")
    roles = await wrap_request(lambda: admin.list_realm_roles(realm))

    filtered = _filter_by_name(roles, names)
    snapshot.log(f"[realm={realm}] Found {len(filtered)} realm roles.")
    return filtered


async def find_realm_role(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    name: str,
) -> dict[str, Any]:
    snapshot.log(f"[realm={realm}] Looking for realm role {name}.")
    role = await _get_or_none(lambda: admin.get_realm_role(realm, name))
    if role is None:
        raise NotFoundError(f'Role "{name}" of realm "{realm}" not found')
    return role


async def find_composite_roles(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    composites: CompositeRoleMapping,
) -> ResolvedRoles:
    """Resolve composite role names into role representations.

    Unknown role names are dropped; unknown clients raise NotFoundError.
    """
    resolved = ResolvedRoles()
    if composites.realm:
        resolved.realm = await get_realm_roles(admin, snapshot, realm, composites.realm)

    for client_id, names in composites.client.items():
        if not names:
            continue
        client = await find_client(admin, snapshot, realm, client_id)
        resolved.client[client_id] = await get_client_roles(
            admin, snapshot, realm, client, names
        )

    return resolved


async def find_role_composites(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    role: dict[str, Any],
) -> ResolvedRoles:
    """Fetch the current composites of a role, grouped by scope."""
    snapshot.log(f"[realm={realm}] [role={role['name']}] Looking for composite roles.")
    composites = await wrap_request(lambda: admin.list_role_composites(realm, role["id"]))

    resolved = ResolvedRoles()
    # containerId of a client role is the client's UUID
    client_ids: dict[str, str] = {}
    for composite in composites:
        if not composite.get("clientRole"):
            resolved.realm.append(composite)
            continue

        container = composite["containerId"]
        if container not in client_ids:
            client = await wrap_request(lambda: admin.get_client(realm, container))
            client_ids[container] = client["clientId"]
        resolved.client.setdefault(client_ids[container], []).append(composite)

    snapshot.log(
        f"[realm={realm}] [role={role['name']}] Found {len(composites)} composite roles."
    )
    return resolved


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


async def find_user(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    username: str,
) -> dict[str, Any]:
    """Find a user by exact username."""
    snapshot.log(f"[realm={realm}] [username={username}] Looking for a user.")
    users = await wrap_request(lambda: admin.find_users(realm, username, exact=True))

    # Older Keycloak versions ignore ``exact``
    matches = [u for u in users if u.get("username", "").lower() == username.lower()]
    if not matches:
        raise NotFoundError(f'User with username "{username}" of realm "{realm}" not found')
    snapshot.log(f"[realm={realm}] [username={username}] User successfully loaded.")

    return matches[0]


async def find_user_role_mappings(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    user: dict[str, Any],
) -> CompositeRoleMapping:
    """Fetch the user's current realm and client role mappings."""
    snapshot.log(f"[realm={realm}] [username={user['username']}] Looking for user role mappings.")
    mappings = await wrap_request(lambda: admin.list_user_role_mappings(realm, user["id"]))
    snapshot.log(
        f"[realm={realm}] [username={user['username']}] User role mappings successfully loaded."
    )
    return _reshape_mappings(mappings)


# -----------------------------------------------------------------------------
# Groups
# -----------------------------------------------------------------------------


async def find_group(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    path: str,
) -> dict[str, Any]:
    """Find a group by its path."""
    snapshot.log(f"[realm={realm}] [groupPath={path}] Looking for a group.")
    group = await _get_or_none(lambda: admin.get_group_by_path(realm, path))

    if group is None:
        raise NotFoundError(f'Group with path "{path}" of realm "{realm}" not found')
    snapshot.log(f"[realm={realm}] [groupPath={path}] Group successfully loaded.")

    return group


async def find_group_role_mappings(
    admin: KeycloakAdminClient,
    snapshot: ActionSnapshot,
    realm: str,
    group: dict[str, Any],
) -> CompositeRoleMapping:
    """Fetch the group's current realm and client role mappings."""
    snapshot.log(f"[realm={realm}] [groupPath={group['path']}] Looking for group role mappings.")
    mappings = await wrap_request(lambda: admin.list_group_role_mappings(realm, group["id"]))
    snapshot.log(
        f"[realm={realm}] [groupPath={group['path']}] Group role mappings successfully loaded."
    )
    return _reshape_mappings(mappings)
