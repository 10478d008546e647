"""Pytest configuration and fixtures."""

from contextlib import asynccontextmanager

import pytest

from fbl.keycloak_admin.client import KeycloakNotFoundError
from fbl.keycloak_admin.logs import ActionSnapshot

MUTATION_PREFIXES = ("create_", "update_", "delete_", "add_")


class FakeAdmin:
    """In-memory stand-in for KeycloakAdminClient.

    Records every call; ``errors`` maps a method name to the exception it raises.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.errors: dict[str, Exception] = {}
        self.realms: set[str] = {"demo"}
        self.clients: list[dict] = []
        self.client_roles: dict[str, list[dict]] = {}
        self.realm_roles: list[dict] = []
        self.users: list[dict] = []
        self.user_mappings: dict[str, dict] = {}
        self.groups: dict[str, dict] = {}
        self.group_mappings: dict[str, dict] = {}
        self.composites: dict[str, list[dict]] = {}

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0].startswith(MUTATION_PREFIXES)]

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors[name]

    # Realms
    async def get_realm(self, realm):
        self._record("get_realm", realm)
        if realm in self.realms:
            return {"id": realm, "realm": realm}
        raise KeycloakNotFoundError(
            "Resource not found", status_code=404, response={"error": "Realm not found."}
        )

    # Clients
    async def find_clients(self, realm, client_id):
        self._record("find_clients", realm, client_id)
        return [c for c in self.clients if c["clientId"] == client_id]

    async def get_client(self, realm, client_uuid):
        self._record("get_client", realm, client_uuid)
        for c in self.clients:
            if c["id"] == client_uuid:
                return c
        raise KeycloakNotFoundError("client", status_code=404)

    async def list_client_roles(self, realm, client_uuid):
        self._record("list_client_roles", realm, client_uuid)
        return list(self.client_roles.get(client_uuid, []))

    async def get_client_role(self, realm, client_uuid, name):
        self._record("get_client_role", realm, client_uuid, name)
        for r in self.client_roles.get(client_uuid, []):
            if r["name"] == name:
                return r
        raise KeycloakNotFoundError("role", status_code=404)

    async def create_client_role(self, realm, client_uuid, role):
        self._record("create_client_role", realm, client_uuid, role)
        self.client_roles.setdefault(client_uuid, []).append(
            {"id": f"{client_uuid}-{role['name']}", "clientRole": True,
             "containerId": client_uuid, **role}
        )

    async def update_client_role(self, realm, client_uuid, name, role):
        self._record("update_client_role", realm, client_uuid, name, role)

    async def delete_client_role(self, realm, client_uuid, name):
        self._record("delete_client_role", realm, client_uuid, name)

    # Realm roles
    async def list_realm_roles(self, realm):
        self._record("list_realm_roles", realm)
        return list(self.realm_roles)

    async def get_realm_role(self, realm, name):
        self._record("get_realm_role", realm, name)
        for r in self.realm_roles:
            if r["name"] == name:
                return r
        raise KeycloakNotFoundError("role", status_code=404)

    async def create_realm_role(self, realm, role):
        self._record("create_realm_role", realm, role)
        self.realm_roles.append({"id": f"realm-{role['name']}", "clientRole": False, **role})

    async def update_realm_role(self, realm, name, role):
        self._record("update_realm_role", realm, name, role)

    async def delete_realm_role(self, realm, name):
        self._record("delete_realm_role", realm, name)

    async def list_role_composites(self, realm, role_id):
        self._record("list_role_composites", realm, role_id)
        return list(self.composites.get(role_id, []))

    async def add_role_composites(self, realm, role_id, roles):
        self._record("add_role_composites", realm, role_id, roles)

    async def delete_role_composites(self, realm, role_id, roles):
        self._record("delete_role_composites", realm, role_id, roles)

    # Users
    async def create_user(self, realm, user):
        self._record("create_user", realm, user)

    async def find_users(self, realm, username, exact=True):
        self._record("find_users", realm, username)
        return [u for u in self.users if u["username"] == username]

    async def update_user(self, realm, user_id, user):
        self._record("update_user", realm, user_id, user)

    async def delete_user(self, realm, user_id):
        self._record("delete_user", realm, user_id)

    async def list_user_role_mappings(self, realm, user_id):
        self._record("list_user_role_mappings", realm, user_id)
        return self.user_mappings.get(user_id, {})

    async def add_user_realm_role_mappings(self, realm, user_id, roles):
        self._record("add_user_realm_role_mappings", realm, user_id, roles)

    async def delete_user_realm_role_mappings(self, realm, user_id, roles):
        self._record("delete_user_realm_role_mappings", realm, user_id, roles)

    async def add_user_client_role_mappings(self, realm, user_id, client_uuid, roles):
        self._record("add_user_client_role_mappings", realm, user_id, client_uuid, roles)

    async def delete_user_client_role_mappings(self, realm, user_id, client_uuid, roles):
        self._record("delete_user_client_role_mappings", realm, user_id, client_uuid, roles)

    # Groups
    async def get_group_by_path(self, realm, path):
        self._record("get_group_by_path", realm, path)
        if path in self.groups:
            return self.groups[path]
        raise KeycloakNotFoundError("group", status_code=404)

    async def create_group(self, realm, group):
        self._record("create_group", realm, group)

    async def create_child_group(self, realm, parent_id, group):
        self._record("create_child_group", realm, parent_id, group)

    async def update_group(self, realm, group_id, group):
        self._record("update_group", realm, group_id, group)

    async def delete_group(self, realm, group_id):
        self._record("delete_group", realm, group_id)

    async def list_group_role_mappings(self, realm, group_id):
        self._record("list_group_role_mappings", realm, group_id)
        return self.group_mappings.get(group_id, {})

    async def add_group_realm_role_mappings(self, realm, group_id, roles):
        self._record("add_group_realm_role_mappings", realm, group_id, roles)

    async def delete_group_realm_role_mappings(self, realm, group_id, roles):
        self._record("delete_group_realm_role_mappings", realm, group_id, roles)

    async def add_group_client_role_mappings(self, realm, group_id, client_uuid, roles):
        self._record("add_group_client_role_mappings", realm, group_id, client_uuid, roles)

    async def delete_group_client_role_mappings(self, realm, group_id, client_uuid, roles):
        self._record("delete_group_client_role_mappings", realm, group_id, client_uuid, roles)


def make_connector(admin: FakeAdmin):
    """Connector yielding ``admin`` and remembering the credentials it got."""

    @asynccontextmanager
    async def connector(credentials):
        admin.credentials = credentials
        yield admin

    return connector


@pytest.fixture
def admin() -> FakeAdmin:
    """Fake admin seeded with one client, one user and one group in realm 'demo'."""
    fake = FakeAdmin()
    fake.clients = [{"id": "c1-uuid", "clientId": "c1"}]
    fake.client_roles = {
        "c1-uuid": [
            {"id": "r-x", "name": "x", "clientRole": True, "containerId": "c1-uuid"},
            {"id": "r-y", "name": "y", "clientRole": True, "containerId": "c1-uuid"},
            {"id": "r-z", "name": "z", "clientRole": True, "containerId": "c1-uuid"},
        ]
    }
    fake.realm_roles = [
        {"id": "rr-a", "name": "a", "clientRole": False, "containerId": "demo"},
        {"id": "rr-b", "name": "b", "clientRole": False, "containerId": "demo"},
    ]
    fake.users = [{"id": "u-bob", "username": "bob", "email": "bob@x.com"}]
    fake.user_mappings = {
        "u-bob": {
            "realmMappings": [{"id": "rr-a", "name": "a"}],
            "clientMappings": {
                "c1": {"id": "c1-uuid", "client": "c1", "mappings": [{"id": "r-x", "name": "x"}]}
            },
        }
    }
    fake.groups = {"/staff": {"id": "g-staff", "name": "staff", "path": "/staff"}}
    return fake


@pytest.fixture
def snapshot() -> ActionSnapshot:
    return ActionSnapshot("test")


@pytest.fixture
def credentials() -> dict:
    """Admin user credentials as they appear in an option bag."""
    return {
        "baseUrl": "http://keycloak.localhost",
        "username": "admin",
        "password": "admin",
    }


@pytest.fixture
def connector(admin):
    return make_connector(admin)
