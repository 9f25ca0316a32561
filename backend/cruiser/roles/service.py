import logging
from collections import defaultdict

from fastapi import HTTPException
from sqlmodel import Session

from ..audit.service import log_event
from ..models.Capability import (
    CapabilityResponse,
    CapabilityUpdateResult,
    RoleCapabilitiesUpdate,
    RoleCapabilitiesUpdateResult,
    RoleCapabilitiesView,
    RoleCapabilityResponse,
)
from ..models.Role import Role, RoleResponse
from ..rbac.store import RoleCapabilityStore

logger = logging.getLogger(__name__)


def get_role_or_404(store: RoleCapabilityStore, role_id: str) -> Role:
    role = store.get_role(role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


async def list_roles(session: Session) -> list[RoleResponse]:
    return [RoleResponse.model_validate(role, from_attributes=True) for role in RoleCapabilityStore(session).list_roles()]


async def get_role_capabilities(session: Session, role_id: str) -> RoleCapabilitiesView:
    store = RoleCapabilityStore(session)
    role = get_role_or_404(store, role_id)

    groups: dict[str, list[RoleCapabilityResponse]] = defaultdict(list)
    for entry in store.get_capabilities_for_role(role.id):
        capability = entry.capability
        base = CapabilityResponse.from_capability(capability).model_dump()
        groups[f"{capability.resource_type}.{capability.resource_name}"].append(
            RoleCapabilityResponse(**base, is_granted=entry.is_granted, explicit=entry.explicit)
        )

    return RoleCapabilitiesView(role_id=role.id, role_name=role.name.value, groups=dict(groups))


async def update_role_capabilities(
    session: Session, role_id: str, data: RoleCapabilitiesUpdate, actor_id: str
) -> RoleCapabilitiesUpdateResult:
    """
    Applies each item on its own. One bad capability id does not stop the
    rest of the batch.
    """
    store = RoleCapabilityStore(session)
    role = get_role_or_404(store, role_id)

    results = []
    for item in data.capabilities:
        try:
            store.set_role_capability(role.id, item.id, item.is_granted, granted_by=actor_id)
        except LookupError as e:
            results.append(CapabilityUpdateResult(id=item.id, success=False, error=str(e)))
            continue
        results.append(CapabilityUpdateResult(id=item.id, success=True))

    success_count = sum(1 for result in results if result.success)
    failure_count = len(results) - success_count
    if success_count:
        changes = ", ".join(
            f"{item.id}={'grant' if item.is_granted else 'deny'}"
            for item, result in zip(data.capabilities, results) if result.success
        )
        log_event(session, actor_id, "ROLE_CAPABILITIES_UPDATE", f"{role.name.value}: {changes}")
    if failure_count:
        logger.warning(f"{failure_count} capability updates failed for role {role.name.value}")

    return RoleCapabilitiesUpdateResult(results=results, success_count=success_count, failure_count=failure_count)


async def clear_role_capability(session: Session, role_id: str, capability_id: str, actor_id: str) -> None:
    store = RoleCapabilityStore(session)
    role = get_role_or_404(store, role_id)
    if not store.clear_role_capability(role.id, capability_id):
        raise HTTPException(status_code=404, detail="No explicit capability row for this role")
    log_event(session, actor_id, "ROLE_CAPABILITY_CLEAR", f"{role.name.value}: {capability_id}")
