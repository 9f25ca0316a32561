"""Coarse route table and fine capability table.

Both tables are plain data, loaded once at startup (``POLICY_FILE`` or the
packaged ``default_policy.json``) into an immutable ``AccessPolicy`` and
validated against each other before the app serves a single request.

Route patterns are absolute paths. A pattern matches only the exact path
unless it is a wildcard, in which case it also matches everything below
it. ``"/api/fleet/*"`` is shorthand for ``{"pattern": "/api/fleet",
"wildcard": true}``.
"""

import json
import logging
import posixpath
from collections import defaultdict
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from ..core.errors import PolicyError
from ..models.Capability import capability_name
from ..models.Role import RoleName

logger = logging.getLogger(__name__)

DEFAULT_POLICY_FILE = Path(__file__).with_name("default_policy.json")


def normalize_path(path: str) -> str:
    """
    Collapses duplicate slashes, resolves ``.`` and ``..`` and drops the
    trailing slash, so ``/api/public/../roles/`` is checked as ``/api/roles``.
    """
    if not path:
        return "/"
    return posixpath.normpath("/" + path.lstrip("/"))


class PublicRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: str
    wildcard: bool = False

    @model_validator(mode="before")
    @classmethod
    def _expand_star(cls, data: Any) -> Any:
        if isinstance(data, dict):
            pattern = data.get("pattern", "")
            if isinstance(pattern, str) and pattern.endswith("/*"):
                data = {**data, "pattern": pattern[:-2] or "/", "wildcard": True}
        return data

    def matches(self, path: str) -> bool:
        if path == self.pattern:
            return True
        if not self.wildcard:
            return False
        return path.startswith(self.pattern.rstrip("/") + "/")


class RouteRule(PublicRule):
    namespace: str
    roles: frozenset[RoleName]

    @property
    def role_names(self) -> frozenset[str]:
        return frozenset(role.value for role in self.roles)


class CapabilitySpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    resource_type: str
    resource_name: str
    action: str
    description: str | None = None
    roles: frozenset[RoleName] = frozenset()

    @property
    def name(self) -> str:
        return capability_name(self.resource_type, self.resource_name, self.action)


class AccessPolicy(BaseModel):
    """
    Read-only view of both policy tables.
    """
    model_config = ConfigDict(frozen=True)

    public: tuple[PublicRule, ...] = ()
    public_suffixes: tuple[str, ...] = ()
    routes: tuple[RouteRule, ...] = ()
    capabilities: tuple[CapabilitySpec, ...] = ()
    unmapped_namespaces: frozenset[str] = frozenset()

    @property
    def namespaces(self) -> frozenset[str]:
        return frozenset(rule.namespace for rule in self.routes)

    def roles_for_namespace(self, namespace: str) -> frozenset[str]:
        roles: set[str] = set()
        for rule in self.routes:
            if rule.namespace == namespace:
                roles |= rule.role_names
        return frozenset(roles)

    def validate_consistency(self) -> None:
        """
        Raises PolicyError describing every problem found.
        """
        problems: list[str] = []

        for kind, rules in (("public", self.public), ("route", self.routes)):
            seen: set[str] = set()
            for rule in rules:
                if not rule.pattern.startswith("/"):
                    problems.append(f"{kind} pattern {rule.pattern!r} must start with '/'")
                elif normalize_path(rule.pattern) != rule.pattern:
                    problems.append(f"{kind} pattern {rule.pattern!r} is not normalized")
                if rule.pattern in seen:
                    problems.append(f"{kind} pattern {rule.pattern!r} is registered twice")
                seen.add(rule.pattern)

        # A public rule that covers a protected pattern would switch the protection off.
        # The reverse (a public carve-out below a protected wildcard) is allowed.
        for public_rule in self.public:
            for route in self.routes:
                if public_rule.matches(route.pattern):
                    problems.append(
                        f"public pattern {public_rule.pattern!r} shadows protected pattern {route.pattern!r}"
                    )

        for rule in self.routes:
            if not rule.roles:
                problems.append(f"route pattern {rule.pattern!r} allows no role")

        names: set[str] = set()
        by_namespace: dict[str, list[CapabilitySpec]] = defaultdict(list)
        for spec in self.capabilities:
            if not all((spec.resource_type, spec.resource_name, spec.action)) or "." in "".join(
                (spec.resource_type, spec.resource_name, spec.action)
            ):
                problems.append(f"capability {spec.name!r} has an empty or dotted part")
            if spec.name in names:
                problems.append(f"capability {spec.name!r} is declared twice")
            names.add(spec.name)
            by_namespace[spec.resource_name].append(spec)

        namespaces = self.namespaces
        for namespace in sorted(namespaces):
            if namespace in self.unmapped_namespaces:
                continue
            if not by_namespace.get(namespace):
                problems.append(
                    f"namespace {namespace!r} is protected by the route table but has no capability; "
                    "add one or list it in unmapped_namespaces"
                )

        for namespace in sorted(self.unmapped_namespaces - namespaces):
            problems.append(f"unmapped namespace {namespace!r} is not used by any route")

        for namespace, specs in by_namespace.items():
            if namespace not in namespaces:
                continue
            allowed = self.roles_for_namespace(namespace)
            for spec in specs:
                unreachable = {role.value for role in spec.roles} - allowed
                if unreachable:
                    problems.append(
                        f"capability {spec.name!r} is granted to {sorted(unreachable)} "
                        f"but the route table denies them namespace {namespace!r}"
                    )

        if problems:
            raise PolicyError("Inconsistent access policy:\n  - " + "\n  - ".join(problems))


def parse_policy(document: dict) -> AccessPolicy:
    try:
        policy = AccessPolicy.model_validate(document)
    except ValidationError as e:
        raise PolicyError(f"Malformed access policy: {e}") from e
    policy.validate_consistency()
    return policy


def load_policy(path: str | Path | None = None) -> AccessPolicy:
    """
    Reads, parses and validates a policy file.
    """
    source = Path(path) if path else DEFAULT_POLICY_FILE
    try:
        with open(source, "r", encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PolicyError(f"Cannot read access policy {source}: {e}") from e

    policy = parse_policy(document)
    logger.info(
        f"Loaded access policy from {source}: {len(policy.public)} public, "
        f"{len(policy.routes)} protected routes, {len(policy.capabilities)} capabilities"
    )
    return policy


@lru_cache
def get_policy() -> AccessPolicy:
    # settings are read here, not at import, so the CLI can validate a
    # policy file without a server environment
    from ..core.settings import settings

    return load_policy(settings.POLICY_FILE)
