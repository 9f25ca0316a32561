from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlmodel import Field, SQLModel

from .User import UpgradeValidationData


class RoleName(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    BASE_MANAGER = "BASE_MANAGER"
    PILOT = "PILOT"
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    PROSPECT = "PROSPECT"


ROLE_DESCRIPTIONS = {
    RoleName.SUPER_ADMIN: "Super Administrator with full system access",
    RoleName.ADMIN: "Administrator with management permissions",
    RoleName.BASE_MANAGER: "Base manager with operational area access",
    RoleName.PILOT: "Pilot with flight operations access",
    RoleName.STUDENT: "Student pilot with limited access",
    RoleName.INSTRUCTOR: "Flight instructor with teaching permissions",
    RoleName.PROSPECT: "Prospective student or customer with limited access",
}

# Roles a PROSPECT can be upgraded to once verified
UPGRADE_TARGETS = (RoleName.STUDENT, RoleName.PILOT, RoleName.INSTRUCTOR)

ADMIN_ROLES = (RoleName.SUPER_ADMIN, RoleName.ADMIN)
USER_MANAGEMENT_ROLES = (RoleName.SUPER_ADMIN, RoleName.ADMIN, RoleName.BASE_MANAGER)
UPGRADE_ROLES = (RoleName.SUPER_ADMIN, RoleName.ADMIN, RoleName.BASE_MANAGER, RoleName.INSTRUCTOR)


class Role(SQLModel, table=True):
    __tablename__ = "roles"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: RoleName = Field(unique=True, index=True)
    description: str | None = None


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"

    user_id: str = Field(foreign_key="users.id", primary_key=True)
    role_id: str = Field(foreign_key="roles.id", primary_key=True)
    assigned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    assigned_by: str | None = Field(default=None, description="User ID of the granting admin, None for system grants.")


class RoleResponse(SQLModel):
    id: str
    name: RoleName
    description: str | None = None


class RoleAssignment(SQLModel):
    role: RoleName


class RoleUpgrade(SQLModel):
    newRole: RoleName
    validationData: UpgradeValidationData | None = None
