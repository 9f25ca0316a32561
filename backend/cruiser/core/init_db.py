import logging

from sqlmodel import Session, select

from .database import engine as default_engine
from ..auth.service import get_password_hash
from .settings import settings
from ..models.Capability import Capability, RoleCapability
from ..models.Role import ROLE_DESCRIPTIONS, Role, RoleName, UserRole
from ..models.User import User, UserStatus
from ..rbac.policy import AccessPolicy, get_policy

logger = logging.getLogger(__name__)


def seed_roles(session: Session) -> dict[RoleName, Role]:
    roles = {role.name: role for role in session.exec(select(Role)).all()}
    for name in RoleName:
        if name not in roles:
            roles[name] = Role(name=name, description=ROLE_DESCRIPTIONS.get(name))
            session.add(roles[name])
    session.commit()
    return roles


def seed_capabilities(session: Session, policy: AccessPolicy, roles: dict[RoleName, Role]) -> int:
    """
    Inserts missing capabilities and their default grants. Existing rows
    are left alone so edits made through the API survive a restart.
    Returns the number of grant rows created.
    """
    existing = {capability.name: capability for capability in session.exec(select(Capability)).all()}
    created = 0
    for spec in policy.capabilities:
        capability = existing.get(spec.name)
        if capability is None:
            capability = Capability(
                resource_type=spec.resource_type,
                resource_name=spec.resource_name,
                action=spec.action,
                description=spec.description,
            )
            session.add(capability)
            session.flush()
            existing[spec.name] = capability
            for role_name in spec.roles:
                session.add(RoleCapability(role_id=roles[role_name].id, capability_id=capability.id, is_granted=True))
                created += 1
    session.commit()
    return created


def seed_admin(session: Session, roles: dict[RoleName, Role]) -> User:
    email = settings.ADMIN_EMAIL.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        logger.info("Admin user already exists.")
        return user

    logger.info(f"Creating initial admin user: {email}")
    user = User(
        email=email,
        hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
        first_name="Super",
        last_name="Admin",
        status=UserStatus.ACTIVE,
    )
    session.add(user)
    session.flush()
    session.add(UserRole(user_id=user.id, role_id=roles[RoleName.SUPER_ADMIN].id))
    session.commit()
    session.refresh(user)
    return user


def init_db(engine=None, policy: AccessPolicy | None = None):
    policy = policy or get_policy()
    with Session(engine or default_engine) as session:
        roles = seed_roles(session)
        created = seed_capabilities(session, policy, roles)
        seed_admin(session, roles)
    logger.info(f"Database seeded: {len(RoleName)} roles, {len(policy.capabilities)} capabilities, {created} new grants")
