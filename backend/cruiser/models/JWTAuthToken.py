from pydantic import field_validator
from sqlmodel import SQLModel

from .Role import RoleName


class Token(SQLModel):
    access_token: str # JWT Token
    token_type: str = "bearer"
    expires_in: int # Seconds
    refresh_token: str | None = None # Single use, rotated on refresh


class ImpersonationToken(SQLModel):
    impersonationToken: str
    targetUserId: str
    originalUserId: str
    expires_in: int


class TokenClaims(SQLModel):
    """
    Verified claims of a bearer credential.

    Anything that does not fit this shape is rejected by the codec, so
    downstream code never sees a missing subject or an unknown role.
    """
    sub: str # Subject (user id)
    roles: list[RoleName] # Roles at issuance
    iss: str # Issuer
    aud: str # Audience
    iat: int # Issued at
    nbf: int # Not before
    exp: int # Expiration time
    jti: str # Token id
    email: str | None = None
    act: str | None = None # Impersonating actor

    @field_validator("sub", "jti")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("roles")
    @classmethod
    def _at_least_one_role(cls, value: list[RoleName]) -> list[RoleName]:
        if not value:
            raise ValueError("token carries no roles")
        return value

    @property
    def role_names(self) -> frozenset[str]:
        return frozenset(role.value for role in self.roles)

    @property
    def is_impersonation(self) -> bool:
        return self.act is not None
