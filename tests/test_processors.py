import pytest

from fbl.keycloak_admin.client import KeycloakConflictError
from fbl.keycloak_admin.errors import (
    ActionValidationError,
    NotFoundError,
    RemoteOperationError,
)
from fbl.keycloak_admin.processors import (
    ActionProcessor,
    ClientRoleCreateActionProcessor,
    ClientRoleDeleteActionProcessor,
    ClientRoleUpdateActionProcessor,
    GroupCreateActionProcessor,
    GroupDeleteActionProcessor,
    GroupRoleMappingsApplyActionProcessor,
    GroupUpdateActionProcessor,
    RealmRoleCreateActionProcessor,
    RealmRoleDeleteActionProcessor,
    RealmRoleUpdateActionProcessor,
    UserCreateActionProcessor,
    UserDeleteActionProcessor,
    UserRoleMappingsApplyActionProcessor,
    UserUpdateActionProcessor,
)


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_user_create(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "user": {"username": "bob", "email": "bob@x.com"},
    }
    processor = UserCreateActionProcessor(options, connector=connector)
    await processor.run()

    assert admin.mutations == [
        ("create_user", "demo", {"username": "bob", "email": "bob@x.com"})
    ]
    assert admin.credentials.base_url == "http://keycloak.localhost"
    assert processor.snapshot.messages[-1] == (
        "[realm=demo] [username=bob] User successfully created."
    )


@pytest.mark.asyncio
async def test_user_create_missing_email_fails_before_remote_call(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "user": {"username": "bob"},
    }
    processor = UserCreateActionProcessor(options, connector=connector)

    with pytest.raises(ActionValidationError) as e:
        await processor.run()

    assert "user.email: Field required" in e.value.violations
    assert admin.calls == []
    assert not hasattr(admin, "credentials")


@pytest.mark.asyncio
async def test_user_create_rejects_unknown_fields(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "user": {"username": "bob", "email": "bob@x.com"},
        "extra": True,
    }
    with pytest.raises(ActionValidationError) as e:
        await UserCreateActionProcessor(options, connector=connector).run()
    assert any(v.startswith("extra:") for v in e.value.violations)


@pytest.mark.asyncio
async def test_user_create_conflict_surfaces_remote_error(admin, connector, credentials):
    admin.errors["create_user"] = KeycloakConflictError(
        "Resource already exists", status_code=409, response={"errorMessage": "exists"}
    )
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "user": {"username": "bob", "email": "bob@x.com"},
    }

    with pytest.raises(RemoteOperationError) as e:
        await UserCreateActionProcessor(options, connector=connector).run()
    assert e.value.code == "409"
    assert str(e.value).endswith("exists")


@pytest.mark.asyncio
async def test_user_update_merges_representation(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "username": "bob",
        "user": {"firstName": "Bob", "enabled": False},
    }
    await UserUpdateActionProcessor(options, connector=connector).run()

    name, realm, user_id, user = admin.mutations[0]
    assert (name, realm, user_id) == ("update_user", "demo", "u-bob")
    assert user["email"] == "bob@x.com"
    assert user["firstName"] == "Bob"
    assert user["enabled"] is False


@pytest.mark.asyncio
async def test_user_delete_unknown_user(admin, connector, credentials):
    options = {"credentials": credentials, "realmName": "demo", "username": "alice"}
    with pytest.raises(NotFoundError):
        await UserDeleteActionProcessor(options, connector=connector).run()
    assert admin.mutations == []


@pytest.mark.asyncio
async def test_user_role_mappings_apply(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "username": "bob",
        "add": {"client": {"c1": ["x", "y"]}},
    }
    await UserRoleMappingsApplyActionProcessor(options, connector=connector).run()

    assert len(admin.mutations) == 1
    name, _, _, _, roles = admin.mutations[0]
    assert name == "add_user_client_role_mappings"
    assert [r["name"] for r in roles] == ["y"]


@pytest.mark.asyncio
async def test_user_role_mappings_apply_rejects_overlap(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "username": "bob",
        "add": {"realm": ["a"]},
        "remove": {"realm": ["a"]},
    }
    with pytest.raises(ActionValidationError) as e:
        await UserRoleMappingsApplyActionProcessor(options, connector=connector).run()
    assert "realm:a" in str(e.value)
    assert admin.calls == []


# -----------------------------------------------------------------------------
# Groups
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_group_create_top_level(admin, connector, credentials):
    options = {"credentials": credentials, "realmName": "demo", "group": {"path": "/ops"}}
    await GroupCreateActionProcessor(options, connector=connector).run()
    assert admin.mutations == [("create_group", "demo", {"name": "ops"})]


@pytest.mark.asyncio
async def test_group_create_child(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "group": {"path": "/staff/admins", "attributes": {"level": ["2"]}},
    }
    await GroupCreateActionProcessor(options, connector=connector).run()
    assert admin.mutations == [
        (
            "create_child_group",
            "demo",
            "g-staff",
            {"name": "admins", "attributes": {"level": ["2"]}},
        )
    ]


@pytest.mark.asyncio
async def test_group_update_merges_representation(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "groupPath": "/staff",
        "group": {"attributes": {"level": ["3"]}},
    }
    await GroupUpdateActionProcessor(options, connector=connector).run()

    assert admin.mutations == [
        (
            "update_group",
            "demo",
            "g-staff",
            {
                "id": "g-staff",
                "name": "staff",
                "path": "/staff",
                "attributes": {"level": ["3"]},
            },
        )
    ]


@pytest.mark.asyncio
async def test_group_update_rejects_name_with_slash(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "groupPath": "/staff",
        "group": {"name": "a/b"},
    }
    with pytest.raises(ActionValidationError) as e:
        await GroupUpdateActionProcessor(options, connector=connector).run()
    assert any(v.startswith("group.name:") for v in e.value.violations)


@pytest.mark.asyncio
async def test_group_delete(admin, connector, credentials):
    options = {"credentials": credentials, "realmName": "demo", "groupPath": "/staff"}
    await GroupDeleteActionProcessor(options, connector=connector).run()
    assert admin.mutations == [("delete_group", "demo", "g-staff")]


@pytest.mark.asyncio
async def test_group_role_mappings_apply(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "groupPath": "/staff",
        "add": {"realm": ["a"], "client": {"c1": ["z"]}},
    }
    await GroupRoleMappingsApplyActionProcessor(options, connector=connector).run()
    assert [m[0] for m in admin.mutations] == [
        "add_group_realm_role_mappings",
        "add_group_client_role_mappings",
    ]


# -----------------------------------------------------------------------------
# Roles
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_realm_role_create_with_composites(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "role": {
            "name": "auditor",
            "description": "Read only",
            "composites": {"realm": ["a"], "client": {"c1": ["x"]}},
        },
    }
    await RealmRoleCreateActionProcessor(options, connector=connector).run()

    assert admin.mutations[0] == (
        "create_realm_role",
        "demo",
        {"name": "auditor", "description": "Read only"},
    )
    name, _, role_id, roles = admin.mutations[1]
    assert (name, role_id) == ("add_role_composites", "realm-auditor")
    assert [r["id"] for r in roles] == ["rr-a", "r-x"]


@pytest.mark.asyncio
async def test_realm_role_create_without_composites(admin, connector, credentials):
    options = {"credentials": credentials, "realmName": "demo", "role": {"name": "plain"}}
    await RealmRoleCreateActionProcessor(options, connector=connector).run()
    assert [m[0] for m in admin.mutations] == ["create_realm_role"]


@pytest.mark.asyncio
async def test_realm_role_create_passes_extra_keys(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "role": {"name": "plain", "clientRole": False},
    }
    await RealmRoleCreateActionProcessor(options, connector=connector).run()
    assert admin.mutations[0][2] == {"name": "plain", "clientRole": False}


@pytest.mark.asyncio
async def test_realm_role_requires_name(admin, connector, credentials):
    options = {"credentials": credentials, "realmName": "demo", "role": {"name": ""}}
    with pytest.raises(ActionValidationError) as e:
        await RealmRoleCreateActionProcessor(options, connector=connector).run()
    assert any(v.startswith("role.name:") for v in e.value.violations)


@pytest.mark.asyncio
async def test_realm_role_update_syncs_composites(admin, connector, credentials):
    admin.composites = {"rr-b": [admin.realm_roles[0]]}
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "role": {"name": "b", "description": "updated", "composites": {}},
    }
    await RealmRoleUpdateActionProcessor(options, connector=connector).run()

    assert admin.mutations[0][0] == "update_realm_role"
    assert admin.mutations[0][3]["description"] == "updated"
    assert admin.mutations[1][0] == "delete_role_composites"
    assert [r["name"] for r in admin.mutations[1][3]] == ["a"]


@pytest.mark.asyncio
async def test_realm_role_delete(admin, connector, credentials):
    options = {"credentials": credentials, "realmName": "demo", "roleName": "b"}
    await RealmRoleDeleteActionProcessor(options, connector=connector).run()
    assert admin.mutations == [("delete_realm_role", "demo", "b")]


@pytest.mark.asyncio
async def test_client_role_create(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "clientId": "c1",
        "role": {"name": "w", "composites": {"client": {"c1": ["x"]}}},
    }
    await ClientRoleCreateActionProcessor(options, connector=connector).run()

    assert admin.mutations[0] == ("create_client_role", "demo", "c1-uuid", {"name": "w"})
    name, _, role_id, roles = admin.mutations[1]
    assert (name, role_id) == ("add_role_composites", "c1-uuid-w")
    assert [r["name"] for r in roles] == ["x"]


@pytest.mark.asyncio
async def test_client_role_create_unknown_client(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "clientId": "ghost",
        "role": {"name": "w"},
    }
    with pytest.raises(NotFoundError) as e:
        await ClientRoleCreateActionProcessor(options, connector=connector).run()
    assert e.value.code == "404"
    assert admin.mutations == []


@pytest.mark.asyncio
async def test_client_role_update_without_composites_leaves_them(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "clientId": "c1",
        "role": {"name": "x", "description": "X"},
    }
    await ClientRoleUpdateActionProcessor(options, connector=connector).run()
    assert [m[0] for m in admin.mutations] == ["update_client_role"]
    assert not any(c[0] == "list_role_composites" for c in admin.calls)


@pytest.mark.asyncio
async def test_client_role_delete(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "demo",
        "clientId": "c1",
        "roleName": "x",
    }
    await ClientRoleDeleteActionProcessor(options, connector=connector).run()
    assert admin.mutations == [("delete_client_role", "demo", "c1-uuid", "x")]


# -----------------------------------------------------------------------------
# Base
# -----------------------------------------------------------------------------


def test_processor_without_process_cannot_be_built():
    class Incomplete(ActionProcessor):
        action_id = "incomplete"

    with pytest.raises(TypeError):
        Incomplete({})


@pytest.mark.asyncio
async def test_missing_realm_stops_before_other_calls(admin, connector, credentials):
    options = {
        "credentials": credentials,
        "realmName": "ghost",
        "user": {"username": "bob", "email": "bob@x.com"},
    }
    with pytest.raises(NotFoundError) as e:
        await UserCreateActionProcessor(options, connector=connector).run()

    assert e.value.code == "404"
    assert "ghost" in str(e.value)
    assert admin.calls == [("get_realm", "ghost")]


@pytest.mark.asyncio
async def test_realm_is_resolved_first(admin, connector, credentials):
    options = {"credentials": credentials, "realmName": "demo", "groupPath": "/staff"}
    await GroupDeleteActionProcessor(options, connector=connector).run()
    assert admin.calls[0] == ("get_realm", "demo")
