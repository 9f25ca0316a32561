"""Access-control error taxonomy.

Nothing here knows about HTTP. ``cruiser.gate.responses`` is the only place
that turns these into responses.
"""


class AccessError(Exception):
    """Base class for every access-control failure."""

    default_detail = "Access denied"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class Unauthenticated(AccessError):
    """No credential, or the credential did not verify."""

    default_detail = "Not authenticated"


class InvalidCredential(Unauthenticated):
    """Raised by the token codec. One message for every cause."""

    default_detail = "Invalid credentials"


class Unauthorized(AccessError):
    """Valid credential, insufficient role or capability."""

    default_detail = "Not enough privileges"


class StoreUnavailable(AccessError):
    """The role/capability store could not answer. Always treated as a deny."""

    default_detail = "Not enough privileges"


class PolicyError(ValueError):
    """Malformed or inconsistent policy tables. Raised at startup only."""
