import logging
from typing import Iterable

from fastapi import HTTPException
from sqlmodel import Session, select

from ..audit.service import log_event
from ..auth.service import issue_impersonation_token, revoke_refresh_tokens
from ..auth.tokens import TokenCodec
from ..models.JWTAuthToken import ImpersonationToken
from ..models.Role import UPGRADE_TARGETS, RoleName, RoleUpgrade
from ..models.User import User, UserResponse, UserStatus
from ..rbac.store import RoleCapabilityStore

logger = logging.getLogger(__name__)


def user_response(user: User, roles: Iterable[str], model=UserResponse, **extra):
    data = user.model_dump(exclude={"hashed_password"})
    return model(**data, roles=sorted(roles), **extra)


def get_user_or_404(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_all_users(session: Session) -> list[UserResponse]:
    store = RoleCapabilityStore(session)
    users = session.exec(select(User).order_by(User.created_at)).all()
    return [user_response(user, store.get_assigned_roles(user.id)) for user in users]


async def get_user(session: Session, user_id: str) -> UserResponse:
    user = get_user_or_404(session, user_id)
    return user_response(user, RoleCapabilityStore(session).get_assigned_roles(user.id))


async def update_status(session: Session, user_id: str, new_status: UserStatus, actor_id: str) -> UserResponse:
    """
    Soft delete and restore. Disabled users lose every role at the store and
    every refresh token, so their outstanding access tokens only pass the
    coarse gate until they expire.
    """
    user = get_user_or_404(session, user_id)
    if user.id == actor_id:
        raise HTTPException(status_code=400, detail="You cannot change your own status")

    store = RoleCapabilityStore(session)
    if new_status == UserStatus.DISABLED and RoleName.SUPER_ADMIN.value in store.get_assigned_roles(user.id):
        raise HTTPException(status_code=403, detail="A SUPER_ADMIN cannot be disabled")

    previous = user.status
    user.status = new_status
    session.add(user)
    session.commit()
    session.refresh(user)

    if new_status == UserStatus.DISABLED:
        revoke_refresh_tokens(session, user.id, "Account disabled")

    log_event(session, actor_id, "USER_STATUS", f"{previous.value} -> {new_status.value}", subject_id=user.id)
    return user_response(user, store.get_assigned_roles(user.id))


async def grant_role(session: Session, user_id: str, role: RoleName, actor_id: str) -> UserResponse:
    store = RoleCapabilityStore(session)
    try:
        changed = store.grant_role(user_id, role, granted_by=actor_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if changed:
        log_event(session, actor_id, "ROLE_GRANT", f"Granted {role.value}", subject_id=user_id)
    return await get_user(session, user_id)


async def revoke_role(session: Session, user_id: str, role: RoleName, actor_id: str) -> UserResponse:
    store = RoleCapabilityStore(session)
    if user_id == actor_id and role == RoleName.SUPER_ADMIN:
        raise HTTPException(status_code=400, detail="You cannot revoke your own SUPER_ADMIN role")
    try:
        changed = store.revoke_role(user_id, role)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if changed:
        log_event(session, actor_id, "ROLE_REVOKE", f"Revoked {role.value}", subject_id=user_id)
    return await get_user(session, user_id)


async def upgrade_role(session: Session, user_id: str, upgrade: RoleUpgrade, actor_id: str) -> UserResponse:
    """
    PROSPECT -> STUDENT, PILOT or INSTRUCTOR once verified, recording the
    validation data on the user.
    """
    if upgrade.newRole not in UPGRADE_TARGETS:
        raise HTTPException(
            status_code=400,
            detail=f"Can only upgrade to {', '.join(role.value for role in UPGRADE_TARGETS)}",
        )

    user = get_user_or_404(session, user_id)
    store = RoleCapabilityStore(session)
    if RoleName.PROSPECT.value not in store.get_assigned_roles(user.id):
        raise HTTPException(status_code=400, detail="User is not a prospect and cannot be upgraded")

    data = upgrade.validationData
    if data is not None:
        user.license_number = data.license_number or user.license_number
        user.medical_class = data.medical_class or user.medical_class
        user.instructor_rating = data.instructor_rating or user.instructor_rating
        if data.total_flight_hours is not None:
            user.total_flight_hours = data.total_flight_hours
        session.add(user)
        session.commit()

    # grant first, so the user never ends up without a role
    store.grant_role(user.id, upgrade.newRole, granted_by=actor_id)
    store.revoke_role(user.id, RoleName.PROSPECT)

    log_event(
        session, actor_id, "ROLE_UPGRADE",
        f"PROSPECT -> {upgrade.newRole.value}", subject_id=user.id,
    )
    logger.info(f"Upgraded {user.id} from PROSPECT to {upgrade.newRole.value}")
    return await get_user(session, user.id)


async def start_impersonation(session: Session, codec: TokenCodec, actor_id: str, impersonating: bool, target_id: str) -> ImpersonationToken:
    if impersonating:
        raise HTTPException(status_code=400, detail="Already impersonating, stop the current session first")

    target = get_user_or_404(session, target_id)
    if target.id == actor_id:
        raise HTTPException(status_code=400, detail="You cannot impersonate yourself")
    if target.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=400, detail="Cannot impersonate a disabled user")
    if RoleName.SUPER_ADMIN.value in RoleCapabilityStore(session).get_assigned_roles(target.id):
        raise HTTPException(status_code=403, detail="Cannot impersonate another SUPER_ADMIN user")

    token = issue_impersonation_token(session, codec, actor_id, target)
    log_event(session, actor_id, "IMPERSONATION_START", f"Impersonating {target.email}", subject_id=target.id)
    logger.info(f"{actor_id} started impersonating {target.id}")
    return token
