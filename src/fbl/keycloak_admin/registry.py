"""Lookup of action processors by action id or alias."""

from __future__ import annotations

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

PROCESSORS: tuple[type[ActionProcessor], ...] = (
    UserCreateActionProcessor,
    UserUpdateActionProcessor,
    UserDeleteActionProcessor,
    UserRoleMappingsApplyActionProcessor,
    GroupCreateActionProcessor,
    GroupUpdateActionProcessor,
    GroupDeleteActionProcessor,
    GroupRoleMappingsApplyActionProcessor,
    RealmRoleCreateActionProcessor,
    RealmRoleUpdateActionProcessor,
    RealmRoleDeleteActionProcessor,
    ClientRoleCreateActionProcessor,
    ClientRoleUpdateActionProcessor,
    ClientRoleDeleteActionProcessor,
)


def _build_index() -> dict[str, type[ActionProcessor]]:
    index: dict[str, type[ActionProcessor]] = {}
    for processor in PROCESSORS:
        for key in (processor.action_id, *processor.aliases):
            if key in index:
                raise ValueError(f"Duplicate action id: {key}")
            index[key] = processor
    return index


_INDEX = _build_index()


def action_ids() -> list[str]:
    """Canonical action ids, in registration order."""
    return [p.action_id for p in PROCESSORS]


def get_processor(action: str) -> type[ActionProcessor]:
    """Return the processor registered under an action id or alias."""
    try:
        return _INDEX[action]
    except KeyError:
        raise KeyError(
            f"Unknown action: {action}. Known actions: {', '.join(action_ids())}"
        ) from None
