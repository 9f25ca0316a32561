from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ..auth.identity import CurrentIdentity, Identity, require_roles
from ..core.database import get_session
from ..models.Audit import ActivityResponse, ChainValidation
from ..models.Role import ADMIN_ROLES, RoleName
from ..rbac.store import RoleCapabilityStore
from .service import list_activity, validate_chain

router = APIRouter(
    prefix="/activity",
    tags=["activity"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=list[ActivityResponse])
def get_activity(
    identity: CurrentIdentity,
    limit: int = Query(default=100, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    """
    The caller's own entries. SUPER_ADMIN and ADMIN see everything.
    """
    roles = RoleCapabilityStore(session).get_roles_for_subject(identity.id)
    sees_all = any(role.value in roles for role in ADMIN_ROLES)
    return list_activity(session, actor_id=None if sees_all else identity.id, limit=limit)


@router.get("/verify", response_model=ChainValidation)
def verify_activity_chain(
    session: Session = Depends(get_session),
    current_admin: Identity = Depends(require_roles(RoleName.SUPER_ADMIN)),
):
    return validate_chain(session)
