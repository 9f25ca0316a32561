from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from ..auth.identity import CurrentIdentity, Identity, get_codec, require_roles
from ..auth.service import set_token_cookie
from ..auth.tokens import TokenCodec
from ..core.database import get_session
from ..core.errors import Unauthorized
from ..core.settings import settings
from ..models.JWTAuthToken import ImpersonationToken
from ..models.Role import ADMIN_ROLES, UPGRADE_ROLES, USER_MANAGEMENT_ROLES, RoleAssignment, RoleName, RoleUpgrade
from ..models.User import UserResponse, UserStatusUpdate
from ..rbac.evaluator import check_roles
from ..rbac.store import RoleCapabilityStore
from .service import (
    get_all_users,
    get_user,
    grant_role,
    revoke_role,
    start_impersonation,
    update_status,
    upgrade_role,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
async def read_users(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(require_roles(*USER_MANAGEMENT_ROLES)),
):
    """
    List all users (SUPER_ADMIN, ADMIN or BASE_MANAGER).
    """
    return await get_all_users(session)


@router.get("/{user_id}", response_model=UserResponse)
async def read_user(user_id: str, identity: CurrentIdentity, session: Session = Depends(get_session)):
    """
    Anyone can read their own profile; other profiles need a user management role.
    """
    if user_id != identity.id:
        roles = RoleCapabilityStore(session).get_roles_for_subject(identity.id)
        if not check_roles(roles, USER_MANAGEMENT_ROLES):
            raise Unauthorized()
    return await get_user(session, user_id)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def change_user_status(
    user_id: str,
    data: UserStatusUpdate,
    session: Session = Depends(get_session),
    current_admin: Identity = Depends(require_roles(*ADMIN_ROLES)),
):
    return await update_status(session, user_id, data.status, current_admin.id)


@router.post("/{user_id}/roles", response_model=UserResponse)
async def assign_role(
    user_id: str,
    data: RoleAssignment,
    session: Session = Depends(get_session),
    current_admin: Identity = Depends(require_roles(RoleName.SUPER_ADMIN)),
):
    """
    Grant a role. Takes effect on the strong path at once and in the user's
    token at the next login or refresh.
    """
    return await grant_role(session, user_id, data.role, current_admin.id)


@router.delete("/{user_id}/roles/{role}", response_model=UserResponse)
async def remove_role(
    user_id: str,
    role: RoleName,
    session: Session = Depends(get_session),
    current_admin: Identity = Depends(require_roles(RoleName.SUPER_ADMIN)),
):
    return await revoke_role(session, user_id, role, current_admin.id)


@router.post("/{user_id}/upgrade-role", response_model=UserResponse)
async def upgrade_user_role(
    user_id: str,
    data: RoleUpgrade,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(require_roles(*UPGRADE_ROLES)),
):
    return await upgrade_role(session, user_id, data, current_user.id)


@router.post("/{user_id}/impersonate", response_model=ImpersonationToken, status_code=status.HTTP_200_OK)
async def impersonate_user(
    user_id: str,
    response: Response,
    session: Session = Depends(get_session),
    codec: TokenCodec = Depends(get_codec),
    current_admin: Identity = Depends(require_roles(RoleName.SUPER_ADMIN)),
):
    """
    Returns an impersonation token for the target and sets it as a cookie.
    Requests carrying it act as the target until it expires or is stopped.
    """
    token = await start_impersonation(
        session, codec, current_admin.id, current_admin.impersonating, user_id
    )
    set_token_cookie(response, settings.IMPERSONATION_COOKIE_NAME, token.impersonationToken, token.expires_in)
    return token
