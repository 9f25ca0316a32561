import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, Response, status
from passlib.context import CryptContext
from sqlmodel import Session, select

from ..core.errors import InvalidCredential, Unauthenticated
from ..core.settings import settings
from ..models.JWTAuthToken import ImpersonationToken, Token
from ..models.RefreshToken import RefreshToken
from ..models.Role import RoleName
from ..models.User import User, UserRegister, UserStatus
from ..rbac.store import RoleCapabilityStore
from .tokens import TokenCodec

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__time_cost=2,
    argon2__memory_cost=102400,
    argon2__parallelism=8
)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password + settings.PASSWORD_PEPPER, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password + settings.PASSWORD_PEPPER)


async def authenticate_user(session: Session, email: str, password: str):
    statement = select(User).where(User.email == email.strip().lower())
    user = session.exec(statement).first()
    if not user or not user.hashed_password:
        return False
    if user.status != UserStatus.ACTIVE:
        return False
    if not verify_password(password, user.hashed_password):
        return False
    return user


async def register_user(session: Session, data: UserRegister) -> User:
    email = str(data.email).strip().lower()
    if session.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        email=email,
        hashed_password=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        status=UserStatus.ACTIVE,
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    # everyone starts as PROSPECT until verified and upgraded
    RoleCapabilityStore(session).grant_role(user.id, RoleName.PROSPECT)
    logger.info(f"Registered {user.id} as PROSPECT")
    return user


def issue_access_token(session: Session, codec: TokenCodec, user: User) -> Token:
    """
    Embeds the roles the store holds right now. Later grants or revocations
    only reach the token when it is reissued.
    """
    roles = RoleCapabilityStore(session).get_roles_for_subject(user.id)
    if not roles:
        # disabled, or never onboarded
        raise Unauthenticated()

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = codec.issue(user.id, roles, expires, email=user.email)
    return Token(access_token=access_token, token_type="bearer", expires_in=int(expires.total_seconds()))


def issue_impersonation_token(session: Session, codec: TokenCodec, actor_id: str, target: User) -> ImpersonationToken:
    roles = RoleCapabilityStore(session).get_roles_for_subject(target.id)
    if not roles:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Target user has no active roles")

    expires = timedelta(minutes=settings.IMPERSONATION_TOKEN_EXPIRE_MINUTES)
    token = codec.issue(target.id, roles, expires, actor_id=actor_id, email=target.email)
    return ImpersonationToken(
        impersonationToken=token,
        targetUserId=target.id,
        originalUserId=actor_id,
        expires_in=int(expires.total_seconds()),
    )


def record_login(session: Session, user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc)
    session.add(user)
    session.commit()
    session.refresh(user)


def _hash_refresh_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def issue_refresh_token(session: Session, user: User) -> tuple[str, RefreshToken]:
    raw = secrets.token_hex(64)
    record = RefreshToken(
        user_id=user.id,
        token_hash=_hash_refresh_token(raw),
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return raw, record


def rotate_refresh_token(session: Session, raw: str) -> tuple[User, str]:
    """
    Spends ``raw`` and hands back its owner with a successor token.

    Every refresh token is single use. Presenting one that was already
    rotated or revoked revokes every refresh token of its owner.
    """
    record = session.exec(select(RefreshToken).where(RefreshToken.token_hash == _hash_refresh_token(raw))).first()
    if record is None:
        raise InvalidCredential()

    if record.revoked_at is not None:
        logger.warning(f"Refresh token {record.id} presented after revocation, revoking all tokens of {record.user_id}")
        revoke_refresh_tokens(session, record.user_id, "Reuse of a revoked token")
        raise InvalidCredential()

    if _as_utc(record.expires_at) <= datetime.now(timezone.utc):
        raise InvalidCredential()

    user = session.get(User, record.user_id)
    if user is None or user.status != UserStatus.ACTIVE:
        raise InvalidCredential()

    new_raw, successor = issue_refresh_token(session, user)
    record.revoked_at = datetime.now(timezone.utc)
    record.revoke_reason = "Token rotation"
    record.replaced_by = successor.id
    session.add(record)
    session.commit()
    return user, new_raw


def revoke_refresh_tokens(session: Session, user_id: str, reason: str) -> int:
    records = session.exec(
        select(RefreshToken).where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
    ).all()
    now = datetime.now(timezone.utc)
    for record in records:
        record.revoked_at = now
        record.revoke_reason = reason
        session.add(record)
    session.commit()
    if records:
        logger.info(f"Revoked {len(records)} refresh token(s) of {user_id}: {reason}")
    return len(records)


def set_token_cookie(response: Response, name: str, token: str, max_age: int, path: str = "/") -> None:
    response.set_cookie(
        key=name,
        value=token,
        max_age=max_age,
        path=path,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )
