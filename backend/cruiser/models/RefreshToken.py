from datetime import datetime, timezone
import uuid

from sqlmodel import Field, SQLModel


class RefreshToken(SQLModel, table=True):
    """
    Server side record of a refresh token. Only the SHA-256 of the token is
    stored; the token itself goes to the client once.
    """
    __tablename__ = "refresh_tokens"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)  # jti
    user_id: str = Field(foreign_key="users.id", index=True)
    token_hash: str = Field(unique=True, index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    revoked_at: datetime | None = Field(default=None, nullable=True)
    revoke_reason: str | None = Field(default=None, nullable=True)
    replaced_by: str | None = Field(default=None, nullable=True)  # id of the rotated successor


class RefreshRequest(SQLModel):
    refresh_token: str | None = None
