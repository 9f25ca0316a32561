"""Role/Capability store.

The only writer of subject-role assignments and role-capability rows. Every
read is a fresh query: nothing is cached between requests. Any persistence
failure surfaces as ``StoreUnavailable`` so callers can fail closed.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.errors import StoreUnavailable
from ..models.Capability import Capability, RoleCapability, split_capability_name
from ..models.Role import Role, RoleName, UserRole
from ..models.User import User, UserStatus
from .evaluator import effective_grants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleCapabilityEntry:
    capability: Capability
    is_granted: bool
    explicit: bool  # a row exists; is_granted=False with explicit=True is a deny


class RoleCapabilityStore:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Role store failure during {operation}: {e}")
            raise StoreUnavailable() from e

    # ---------------------------------------------------------------- lookups

    def get_subject(self, subject_id: str) -> User | None:
        with self._guard("get_subject"):
            return self.session.get(User, subject_id)

    def list_roles(self) -> list[Role]:
        with self._guard("list_roles"):
            return list(self.session.exec(select(Role).order_by(Role.name)).all())

    def get_role(self, role_id: str) -> Role | None:
        with self._guard("get_role"):
            return self.session.get(Role, role_id)

    def get_role_by_name(self, name: RoleName | str) -> Role | None:
        with self._guard("get_role_by_name"):
            return self.session.exec(select(Role).where(Role.name == RoleName(name))).first()

    def list_capabilities(self) -> list[Capability]:
        with self._guard("list_capabilities"):
            statement = select(Capability).order_by(
                Capability.resource_type, Capability.resource_name, Capability.action
            )
            return list(self.session.exec(statement).all())

    def get_capability(self, capability_id: str) -> Capability | None:
        with self._guard("get_capability"):
            return self.session.get(Capability, capability_id)

    def get_capability_by_name(self, name: str) -> Capability | None:
        resource_type, resource_name, action = split_capability_name(name)
        with self._guard("get_capability_by_name"):
            statement = select(Capability).where(
                Capability.resource_type == resource_type,
                Capability.resource_name == resource_name,
                Capability.action == action,
            )
            return self.session.exec(statement).first()

    # ------------------------------------------------------------ resolution

    def get_roles_for_subject(self, subject_id: str) -> frozenset[str]:
        """
        Current roles of an ACTIVE subject. Missing or disabled subjects have none.
        """
        with self._guard("get_roles_for_subject"):
            statement = (
                select(Role.name)
                .join(UserRole, UserRole.role_id == Role.id)
                .join(User, User.id == UserRole.user_id)
                .where(UserRole.user_id == subject_id, User.status == UserStatus.ACTIVE)
            )
            return frozenset(RoleName(name).value for name in self.session.exec(statement).all())

    def get_assigned_roles(self, subject_id: str) -> frozenset[str]:
        # regardless of status, for administration screens
        with self._guard("get_assigned_roles"):
            statement = (
                select(Role.name)
                .join(UserRole, UserRole.role_id == Role.id)
                .where(UserRole.user_id == subject_id)
            )
            return frozenset(RoleName(name).value for name in self.session.exec(statement).all())

    def get_capabilities_for_role(self, role_id: str) -> list[RoleCapabilityEntry]:
        with self._guard("get_capabilities_for_role"):
            rows = {
                row.capability_id: row
                for row in self.session.exec(
                    select(RoleCapability).where(RoleCapability.role_id == role_id)
                ).all()
            }
        entries = []
        for capability in self.list_capabilities():
            row = rows.get(capability.id)
            entries.append(RoleCapabilityEntry(
                capability=capability,
                is_granted=bool(row and row.is_granted),
                explicit=row is not None,
            ))
        return entries

    def _grant_rows_for_subject(self, subject_id: str) -> list[tuple[Capability, bool]]:
        with self._guard("grant_rows_for_subject"):
            statement = (
                select(Capability, RoleCapability.is_granted)
                .join(RoleCapability, RoleCapability.capability_id == Capability.id)
                .join(UserRole, UserRole.role_id == RoleCapability.role_id)
                .join(User, User.id == UserRole.user_id)
                .where(UserRole.user_id == subject_id, User.status == UserStatus.ACTIVE)
            )
            return list(self.session.exec(statement).all())

    def get_granted_capability_names(self, subject_id: str) -> frozenset[str]:
        rows = self._grant_rows_for_subject(subject_id)
        return effective_grants((capability.name, is_granted) for capability, is_granted in rows)

    def get_capabilities_for_subject(self, subject_id: str) -> list[Capability]:
        rows = self._grant_rows_for_subject(subject_id)
        granted = effective_grants((capability.name, is_granted) for capability, is_granted in rows)
        unique = {capability.name: capability for capability, _ in rows if capability.name in granted}
        return [unique[name] for name in sorted(unique)]

    def has_capability(self, subject_id: str, capability_name: str) -> bool:
        """
        Never raises: an unreachable store answers False.
        """
        try:
            return capability_name in self.get_granted_capability_names(subject_id)
        except StoreUnavailable:
            logger.error(f"Denying {capability_name} to {subject_id}: store unavailable")
            return False

    # ---------------------------------------------------------------- writes

    def _require_subject_and_role(self, subject_id: str, role_name: RoleName | str) -> Role:
        if self.get_subject(subject_id) is None:
            raise LookupError("User not found")
        role = self.get_role_by_name(role_name)
        if role is None:
            raise LookupError(f"Role {role_name} not found")
        return role

    def grant_role(self, subject_id: str, role_name: RoleName | str, granted_by: str | None = None) -> bool:
        """
        Returns False when the subject already held the role. Last write wins.
        """
        role = self._require_subject_and_role(subject_id, role_name)
        with self._guard("grant_role"):
            if self.session.get(UserRole, (subject_id, role.id)) is not None:
                return False
            self.session.add(UserRole(user_id=subject_id, role_id=role.id, assigned_by=granted_by))
            self.session.commit()
        logger.info(f"Granted {role.name.value} to {subject_id} (by {granted_by or 'system'})")
        return True

    def revoke_role(self, subject_id: str, role_name: RoleName | str) -> bool:
        """
        Returns False when the subject did not hold the role.

        Revoking the last role falls back to PROSPECT; a subject whose only
        role is PROSPECT cannot lose it.
        """
        role = self._require_subject_and_role(subject_id, role_name)
        with self._guard("revoke_role"):
            assignment = self.session.get(UserRole, (subject_id, role.id))
            if assignment is None:
                return False
            remaining = self.session.exec(
                select(UserRole).where(UserRole.user_id == subject_id, UserRole.role_id != role.id)
            ).all()
            if not remaining:
                if role.name == RoleName.PROSPECT:
                    raise ValueError("A user must keep at least one role")
                prospect = self.session.exec(select(Role).where(Role.name == RoleName.PROSPECT)).first()
                if prospect is None:
                    raise LookupError("Role PROSPECT not found")
                self.session.add(UserRole(user_id=subject_id, role_id=prospect.id))
            self.session.delete(assignment)
            self.session.commit()
        logger.info(f"Revoked {role.name.value} from {subject_id}")
        return True

    def set_role_capability(
        self,
        role_id: str,
        capability_id: str,
        is_granted: bool,
        granted_by: str | None = None,
    ) -> RoleCapability:
        if self.get_role(role_id) is None:
            raise LookupError("Role not found")
        if self.get_capability(capability_id) is None:
            raise LookupError("Capability not found")
        with self._guard("set_role_capability"):
            row = self.session.get(RoleCapability, (role_id, capability_id))
            if row is None:
                row = RoleCapability(role_id=role_id, capability_id=capability_id)
            row.is_granted = is_granted
            row.granted_by = granted_by
            row.updated_at = datetime.now(timezone.utc)
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def clear_role_capability(self, role_id: str, capability_id: str) -> bool:
        with self._guard("clear_role_capability"):
            row = self.session.get(RoleCapability, (role_id, capability_id))
            if row is None:
                return False
            self.session.delete(row)
            self.session.commit()
        return True
