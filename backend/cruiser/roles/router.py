from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from ..auth.identity import Identity, require_roles
from ..core.database import get_session
from ..models.Capability import RoleCapabilitiesUpdate, RoleCapabilitiesUpdateResult, RoleCapabilitiesView
from ..models.Role import RoleName, RoleResponse
from .service import clear_role_capability, get_role_capabilities, list_roles, update_role_capabilities

# The gate already limits /api/roles to SUPER_ADMIN by token; writes re-check against the store.
router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=list[RoleResponse])
async def read_roles(session: Session = Depends(get_session)):
    return await list_roles(session)


@router.get("/{role_id}/capabilities", response_model=RoleCapabilitiesView)
async def read_role_capabilities(role_id: str, session: Session = Depends(get_session)):
    """
    Every capability with this role's grant, grouped by resource.
    """
    return await get_role_capabilities(session, role_id)


@router.put("/{role_id}/capabilities", response_model=RoleCapabilitiesUpdateResult)
async def write_role_capabilities(
    role_id: str,
    data: RoleCapabilitiesUpdate,
    session: Session = Depends(get_session),
    current_admin: Identity = Depends(require_roles(RoleName.SUPER_ADMIN)),
):
    return await update_role_capabilities(session, role_id, data, current_admin.id)


@router.delete("/{role_id}/capabilities/{capability_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role_capability(
    role_id: str,
    capability_id: str,
    session: Session = Depends(get_session),
    current_admin: Identity = Depends(require_roles(RoleName.SUPER_ADMIN)),
):
    await clear_role_capability(session, role_id, capability_id, current_admin.id)
    return None
