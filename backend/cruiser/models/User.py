from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlmodel import Field, SQLModel
from pydantic import EmailStr


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


# ==========================================
# SQLModel (Database Entity + Base Pydantic)
# ==========================================
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(unique=True, index=True, nullable=False)
    hashed_password: str | None = Field(default=None, nullable=True)
    first_name: str | None = Field(default=None, nullable=True)
    last_name: str | None = Field(default=None, nullable=True)
    status: UserStatus = Field(default=UserStatus.ACTIVE)  # soft delete via DISABLED

    # Recorded when a PROSPECT is upgraded
    license_number: str | None = Field(default=None, nullable=True)
    medical_class: str | None = Field(default=None, nullable=True)
    instructor_rating: str | None = Field(default=None, nullable=True)
    total_flight_hours: float = Field(default=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_login_at: datetime | None = Field(default=None, nullable=True)

# ==========================================
# Pydantic Models (DTOs)
# ==========================================

# Properties to receive via API on registration
class UserRegister(SQLModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str | None = None
    last_name: str | None = None

# Properties to receive via API on login
class LoginRequest(SQLModel):
    email: str
    password: str

# Properties to return via API
class UserResponse(SQLModel):
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    status: UserStatus
    roles: list[str] = []
    total_flight_hours: float = 0
    license_number: str | None = None
    medical_class: str | None = None
    instructor_rating: str | None = None
    last_login_at: datetime | None = None

class MeResponse(UserResponse):
    isImpersonation: bool = False
    originalUserId: str | None = None

class UserStatusUpdate(SQLModel):
    status: UserStatus

class UpgradeValidationData(SQLModel):
    license_number: str | None = None
    medical_class: str | None = None
    instructor_rating: str | None = None
    total_flight_hours: float | None = None
