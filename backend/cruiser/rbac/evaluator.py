"""Allow/deny decisions over the policy tables.

The coarse check only looks at the roles it is handed (normally the ones
embedded in the bearer token) and never touches the store. The fine check
resolves the subject's current roles and capability rows from the store and
fails closed when the store cannot answer.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..core.errors import StoreUnavailable
from ..core.settings import settings
from .policy import AccessPolicy, RouteRule, normalize_path

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ALLOWED = "allowed"
    DENIED = "denied"


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    path: str
    rule: Optional[RouteRule] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is not Outcome.DENIED


def effective_grants(rows: Iterable[tuple[str, bool]]) -> frozenset[str]:
    """
    Merges ``(capability_name, is_granted)`` rows collected across all of a
    subject's roles. Deny wins: a capability is granted iff at least one row
    grants it and no row explicitly denies it.
    """
    granted: set[str] = set()
    denied: set[str] = set()
    for name, is_granted in rows:
        (granted if is_granted else denied).add(name)
    return frozenset(granted - denied)


def check_roles(roles: Iterable[str], required: Iterable[str]) -> bool:
    return not set(roles).isdisjoint({getattr(r, "value", r) for r in required})


class AccessEvaluator:
    def __init__(self, policy: AccessPolicy, api_prefix: str | None = None):
        self.policy = policy
        self.api_prefix = (api_prefix if api_prefix is not None else settings.API_PREFIX).rstrip("/")
        # longest pattern first, so the first hit is the most specific one
        self._routes = sorted(policy.routes, key=lambda rule: len(rule.pattern), reverse=True)

    def is_api_path(self, path: str) -> bool:
        path = normalize_path(path)
        return path == self.api_prefix or path.startswith(self.api_prefix + "/")

    def is_public(self, path: str) -> bool:
        path = normalize_path(path)
        if any(rule.matches(path) for rule in self.policy.public):
            return True
        # static assets only, never API responses
        return not self.is_api_path(path) and path.lower().endswith(tuple(self.policy.public_suffixes))

    def match_route(self, path: str) -> Optional[RouteRule]:
        path = normalize_path(path)
        for rule in self._routes:
            if rule.matches(path):
                return rule
        return None

    def check_route(self, path: str, roles: Iterable[str]) -> Decision:
        """
        Coarse check. Unregistered paths only need a valid credential.
        """
        path = normalize_path(path)
        if self.is_public(path):
            return Decision(Outcome.PUBLIC, path)

        rule = self.match_route(path)
        if rule is None:
            return Decision(Outcome.AUTHENTICATED, path)

        if check_roles(roles, rule.role_names):
            return Decision(Outcome.ALLOWED, path, rule)
        return Decision(Outcome.DENIED, path, rule)

    def check_capability(self, store, subject_id: str, capability: str) -> Decision:
        """
        Fine check against the store's current rows.
        """
        try:
            allowed = capability in store.get_granted_capability_names(subject_id)
        except StoreUnavailable:
            logger.error(f"Store unavailable while checking {capability} for {subject_id}; denying")
            allowed = False
        return Decision(Outcome.ALLOWED if allowed else Outcome.DENIED, capability)
