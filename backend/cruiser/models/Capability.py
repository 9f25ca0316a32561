from datetime import datetime, timezone
import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class Capability(SQLModel, table=True):
    __tablename__ = "capabilities"
    __table_args__ = (UniqueConstraint("resource_type", "resource_name", "action"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    resource_type: str = Field(index=True, description="menu, data or api")
    resource_name: str = Field(index=True)
    action: str
    description: str | None = None

    @property
    def name(self) -> str:
        return capability_name(self.resource_type, self.resource_name, self.action)


class RoleCapability(SQLModel, table=True):
    __tablename__ = "role_capabilities"

    role_id: str = Field(foreign_key="roles.id", primary_key=True)
    capability_id: str = Field(foreign_key="capabilities.id", primary_key=True)
    is_granted: bool = Field(default=True, description="False is an explicit deny.")
    granted_by: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def capability_name(resource_type: str, resource_name: str, action: str) -> str:
    return f"{resource_type}.{resource_name}.{action}"


def split_capability_name(name: str) -> tuple[str, str, str]:
    parts = name.split(".")
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Invalid capability name: {name!r}")
    return parts[0], parts[1], parts[2]

# ==========================================
# Pydantic Models (DTOs)
# ==========================================

class CapabilityResponse(SQLModel):
    id: str
    name: str
    resource_type: str
    resource_name: str
    action: str
    description: str | None = None

    @classmethod
    def from_capability(cls, capability: Capability) -> "CapabilityResponse":
        return cls(
            id=capability.id,
            name=capability.name,
            resource_type=capability.resource_type,
            resource_name=capability.resource_name,
            action=capability.action,
            description=capability.description,
        )


class CapabilityUpdate(SQLModel):
    id: str
    is_granted: bool


class RoleCapabilitiesUpdate(SQLModel):
    capabilities: list[CapabilityUpdate]


class RoleCapabilityResponse(CapabilityResponse):
    is_granted: bool
    explicit: bool  # False when no row exists and the grant is implicit "no"


class RoleCapabilitiesView(SQLModel):
    role_id: str
    role_name: str
    # keyed by "resource_type.resource_name", e.g. "menu.users"
    groups: dict[str, list[RoleCapabilityResponse]]


class CapabilityUpdateResult(SQLModel):
    id: str
    success: bool
    error: str | None = None


class RoleCapabilitiesUpdateResult(SQLModel):
    results: list[CapabilityUpdateResult]
    success_count: int
    failure_count: int
