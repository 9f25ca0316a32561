"""Who is calling.

``resolve_identity`` turns the credentials of a request into an ``Identity``.
The route gate runs it once per request and leaves the result on
``request.state.identity``; handlers read it back through
``get_current_identity``.

Two credentials may be present at the same time: the caller's own access
token and an impersonation token minted for a SUPER_ADMIN acting as
another user. The impersonation token wins while it verifies.
"""

import logging
from dataclasses import dataclass, replace
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlmodel import Session

from ..core.database import get_session
from ..core.errors import InvalidCredential, StoreUnavailable, Unauthenticated, Unauthorized
from ..core.settings import Settings, settings as default_settings
from ..models.JWTAuthToken import TokenClaims
from ..models.Role import RoleName
from ..rbac.evaluator import check_roles
from ..rbac.store import RoleCapabilityStore
from .tokens import TokenCodec, get_token_codec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    id: str
    roles: frozenset[str]
    impersonating: bool = False
    actor_id: str | None = None  # the SUPER_ADMIN behind an impersonation
    token_id: str | None = None
    email: str | None = None

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "Identity":
        return cls(
            id=claims.sub,
            roles=claims.role_names,
            impersonating=claims.is_impersonation,
            actor_id=claims.act,
            token_id=claims.jti,
            email=claims.email,
        )

    @property
    def real_user_id(self) -> str:
        return self.actor_id or self.id


@dataclass(frozen=True)
class Credentials:
    primary: str | None = None
    impersonation: str | None = None

    @property
    def present(self) -> bool:
        return bool(self.primary or self.impersonation)


def _bearer(authorization: str | None) -> str | None:
    scheme, value = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def extract_credentials(request: Request, settings: Settings = default_settings) -> Credentials:
    """
    Primary: ``Authorization: Bearer`` first, then the token cookie.
    Impersonation: the impersonation header first, then its cookie.
    """
    primary = _bearer(request.headers.get("authorization")) or request.cookies.get(settings.TOKEN_COOKIE_NAME)
    impersonation = (
        request.headers.get(settings.IMPERSONATION_HEADER)
        or request.cookies.get(settings.IMPERSONATION_COOKIE_NAME)
    )
    return Credentials(primary=primary or None, impersonation=impersonation or None)


def resolve_identity(credentials: Credentials, codec: TokenCodec) -> Identity:
    if credentials.impersonation:
        try:
            claims = codec.verify(credentials.impersonation)
            if not claims.is_impersonation:
                raise InvalidCredential()
            return Identity.from_claims(claims)
        except InvalidCredential:
            if not credentials.primary:
                raise
            # expired or tampered impersonation: act as yourself again
            logger.info("Impersonation credential rejected, falling back to the primary credential")

    if not credentials.primary:
        raise Unauthenticated()

    return Identity.from_claims(codec.verify(credentials.primary))


def get_codec(request: Request) -> TokenCodec:
    return getattr(request.app.state, "token_codec", None) or get_token_codec()


def current_user(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is not None:
        return identity
    identity = resolve_identity(extract_credentials(request), get_codec(request))
    request.state.identity = identity
    return identity


async def get_current_identity(request: Request) -> Identity:
    return current_user(request)


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]


def require_roles(*roles: RoleName | str):
    """
    Strong check: the subject's roles are re-read from the store, so a
    revocation takes effect here immediately even if the token still
    carries the role.
    """
    required = frozenset(RoleName(role).value for role in roles)

    async def dependency(identity: CurrentIdentity, session: Session = Depends(get_session)) -> Identity:
        store = RoleCapabilityStore(session)
        try:
            current = store.get_roles_for_subject(identity.id)
        except StoreUnavailable:
            raise Unauthorized()
        if not check_roles(current, required):
            logger.info(f"Denied {identity.id}: needs one of {sorted(required)}, holds {sorted(current)}")
            raise Unauthorized()
        return replace(identity, roles=current)

    return dependency


def require_capability(capability: str):
    async def dependency(identity: CurrentIdentity, session: Session = Depends(get_session)) -> Identity:
        if not RoleCapabilityStore(session).has_capability(identity.id, capability):
            logger.info(f"Denied {identity.id}: missing capability {capability}")
            raise Unauthorized()
        return identity

    return dependency
