from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlmodel import Session

from ..audit.service import http_action, log_event
from ..core.database import get_session
from ..core.errors import Unauthenticated
from ..core.settings import settings
from ..models.Capability import CapabilityResponse
from ..models.JWTAuthToken import Token
from ..models.RefreshToken import RefreshRequest
from ..models.User import LoginRequest, MeResponse, User, UserRegister, UserResponse
from ..rbac.store import RoleCapabilityStore
from ..users.service import user_response
from .identity import CurrentIdentity, get_codec
from .service import (
    authenticate_user,
    issue_access_token,
    issue_refresh_token,
    record_login,
    register_user,
    revoke_refresh_tokens,
    rotate_refresh_token,
    set_token_cookie,
)
from .tokens import TokenCodec

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE_PATH = f"{settings.API_PREFIX}/auth"


def _set_session_cookies(response: Response, token: Token) -> None:
    set_token_cookie(response, settings.TOKEN_COOKIE_NAME, token.access_token, token.expires_in)
    set_token_cookie(
        response, settings.REFRESH_COOKIE_NAME, token.refresh_token,
        settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600, path=REFRESH_COOKIE_PATH,
    )


@router.post("/login", response_model=Token)
async def login(
    login_data: LoginRequest,
    response: Response,
    session: Session = Depends(get_session),
    codec: TokenCodec = Depends(get_codec),
):
    """
    Login with email and password to get an access token.
    """
    user = await authenticate_user(session, login_data.email, login_data.password)

    if not user:
        action = http_action("POST", "/auth/login", status.HTTP_401_UNAUTHORIZED)
        log_event(session, None, action, f"Incorrect email or password for {login_data.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = issue_access_token(session, codec, user)
    token.refresh_token, _ = issue_refresh_token(session, user)
    record_login(session, user)
    _set_session_cookies(response, token)

    log_event(session, user.id, http_action("POST", "/auth/login", status.HTTP_200_OK), "Login successful")
    return token


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, session: Session = Depends(get_session)):
    """
    Self-service sign up. New accounts start as PROSPECT.
    """
    user = await register_user(session, data)
    log_event(
        session, user.id, http_action("POST", "/auth/register", status.HTTP_201_CREATED),
        "Registered as PROSPECT", subject_id=user.id,
    )
    roles = RoleCapabilityStore(session).get_roles_for_subject(user.id)
    return user_response(user, roles)


@router.get("/me", response_model=MeResponse)
async def read_me(identity: CurrentIdentity, session: Session = Depends(get_session)):
    """
    Profile of whoever the request acts as. Roles are the ones in the token.
    """
    user = session.get(User, identity.id)
    if user is None:
        raise Unauthenticated()
    return user_response(
        user,
        identity.roles,
        MeResponse,
        isImpersonation=identity.impersonating,
        originalUserId=identity.actor_id,
    )


@router.get("/me/capabilities", response_model=list[CapabilityResponse])
async def read_my_capabilities(
    identity: CurrentIdentity,
    resource_type: str | None = None,
    session: Session = Depends(get_session),
):
    capabilities = RoleCapabilityStore(session).get_capabilities_for_subject(identity.id)
    return [
        CapabilityResponse.from_capability(capability)
        for capability in capabilities
        if resource_type is None or capability.resource_type == resource_type
    ]


@router.post("/refresh", response_model=Token)
async def refresh(
    request: Request,
    response: Response,
    data: RefreshRequest | None = None,
    session: Session = Depends(get_session),
    codec: TokenCodec = Depends(get_codec),
):
    """
    Trades a refresh token (body or cookie) for a new access token with
    roles read from the store now, plus a new refresh token. Access tokens
    are not accepted here, so an impersonation credential never refreshes
    into the actor's own token. Outstanding access tokens stay valid until
    they expire.
    """
    raw = (data.refresh_token if data else None) or request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not raw:
        raise Unauthenticated()

    user, refresh_token = rotate_refresh_token(session, raw)
    token = issue_access_token(session, codec, user)
    token.refresh_token = refresh_token
    _set_session_cookies(response, token)
    return token


@router.post("/logout")
async def logout(
    identity: CurrentIdentity,
    response: Response,
    session: Session = Depends(get_session),
):
    """
    Clears the credential cookies and revokes every refresh token of the
    real user.
    """
    revoke_refresh_tokens(session, identity.real_user_id, "Logout")
    response.delete_cookie(settings.TOKEN_COOKIE_NAME)
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, path=REFRESH_COOKIE_PATH)
    response.delete_cookie(settings.IMPERSONATION_COOKIE_NAME)
    action = http_action("POST", "/auth/logout", status.HTTP_200_OK)
    log_event(session, identity.real_user_id, action, "Logged out successfully")
    return {"message": "Logged out successfully"}


@router.post("/impersonation/stop")
async def stop_impersonation(
    identity: CurrentIdentity,
    response: Response,
    session: Session = Depends(get_session),
):
    if not identity.impersonating:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Not impersonating anyone")

    response.delete_cookie(settings.IMPERSONATION_COOKIE_NAME)
    log_event(
        session, identity.actor_id, "IMPERSONATION_STOP",
        f"Stopped impersonating {identity.id}", subject_id=identity.id,
    )
    return {"message": "Impersonation stopped", "originalUserId": identity.actor_id}
