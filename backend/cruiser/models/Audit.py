from datetime import datetime, timezone
from typing import Optional
from sqlmodel import Field, SQLModel
import hashlib

GENESIS_HASH = "0" * 64


class ActivityLog(SQLModel, table=True):
    __tablename__ = "activity_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc).replace(microsecond=0))
    actor_id: str = Field(index=True)
    subject_id: str | None = Field(default=None, index=True)
    action: str
    details: str = ""
    previous_hash: str
    current_hash: str

    def calculate_hash(self) -> str:
        """
        SHA-256 over previous_hash + timestamp + actor + subject + action + details.
        """
        # SQLite drops the tzinfo on the way back, hash the naive form
        ts_str = self.timestamp.replace(tzinfo=None).isoformat()

        data = (
            self.previous_hash +
            ts_str +
            self.actor_id +
            (self.subject_id or "") +
            self.action +
            (self.details or "")
        )
        return hashlib.sha256(data.encode("utf-8")).hexdigest()


class ActivityResponse(SQLModel):
    id: int
    timestamp: datetime
    actor_id: str
    subject_id: str | None = None
    action: str
    details: str


class ChainValidation(SQLModel):
    valid: bool
    broken_id: int | None = None
    entries: int
