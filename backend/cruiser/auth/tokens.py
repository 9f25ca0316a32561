"""Bearer credential codec.

Issues and verifies signed JWTs carrying a subject id, the subject's roles at
issuance and the standard issuer, audience and expiry claims. Tokens are not
stored anywhere: once issued they stay valid until ``exp``.
"""

import logging
import time
import uuid
from datetime import timedelta
from functools import lru_cache
from typing import Callable, Iterable

from jose import JWTError, jwt
from pydantic import ValidationError

from ..core.errors import InvalidCredential
from ..core.log_config import token_preview
from ..core.settings import Settings, settings as default_settings
from ..models.JWTAuthToken import TokenClaims
from ..models.Role import RoleName

logger = logging.getLogger(__name__)


class TokenCodec:
    def __init__(
        self,
        signing_key: str,
        verifying_key: str,
        algorithm: str = "HS256",
        issuer: str = "cruiser-aviation",
        audience: str = "cruiser-app",
        clock: Callable[[], float] = time.time,
    ):
        if not signing_key or not verifying_key:
            raise RuntimeError(
                f"No signing key configured for {algorithm}. "
                "Set JWT_SECRET (HS*) or SERVER_PRIVATE_KEY/SERVER_PUBLIC_KEY (RS*)."
            )
        self._signing_key = signing_key
        self._verifying_key = verifying_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], float] = time.time) -> "TokenCodec":
        return cls(
            signing_key=settings.signing_key(),
            verifying_key=settings.verifying_key(),
            algorithm=settings.ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            clock=clock,
        )

    def issue(
        self,
        subject_id: str,
        roles: Iterable[str],
        ttl: timedelta | int,
        actor_id: str | None = None,
        email: str | None = None,
    ) -> str:
        """
        Signs a new token. ``actor_id`` marks an impersonation token: the
        subject is the impersonated user, the actor the one who started it.
        """
        seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else ttl
        if seconds < 1:
            raise ValueError("Token TTL must be at least one second")

        role_list = sorted({RoleName(role).value for role in roles})
        if not role_list:
            raise ValueError("Cannot issue a token without roles")
        if not subject_id:
            raise ValueError("Cannot issue a token without a subject")

        now = self._clock()
        claims = {
            "sub": str(subject_id),
            "roles": role_list,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(now),
            "nbf": int(now),
            "exp": int(now + seconds),
            "jti": str(uuid.uuid4()),
        }
        if email:
            claims["email"] = email
        if actor_id:
            claims["act"] = str(actor_id)

        return jwt.encode(claims, self._signing_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Returns the verified claims or raises InvalidCredential.

        Signature, issuer/audience, shape and expiry failures all raise the
        same error with the same message.
        """
        try:
            payload = jwt.decode(
                token,
                self._verifying_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                # time checks below use the codec clock, without leeway
                options={"verify_exp": False, "verify_nbf": False},
            )
            claims = TokenClaims.model_validate(payload)
        except (JWTError, ValidationError, AttributeError, TypeError) as e:
            logger.debug(f"Token {token_preview(token)} rejected: {type(e).__name__}")
            raise InvalidCredential()

        now = self._clock()
        if claims.exp <= now or claims.nbf > now:
            logger.debug(f"Token {token_preview(token)} rejected: outside validity window")
            raise InvalidCredential()

        return claims


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(default_settings)
