"""Route gate.

Runs before any handler. Public paths pass straight through; everything
else needs a credential that verifies, and paths registered in the route
table also need one of the listed roles. The roles checked here are the
ones embedded in the token, so a revocation only shows up once the token
is reissued. Handlers that must see revocations immediately use the
strong dependencies in ``cruiser.auth.identity``.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..auth.identity import extract_credentials, resolve_identity
from ..auth.tokens import TokenCodec
from ..core.errors import Unauthenticated, Unauthorized
from ..core.settings import Settings, settings as default_settings
from ..rbac.evaluator import AccessEvaluator
from ..rbac.policy import normalize_path
from .responses import access_error_response

logger = logging.getLogger(__name__)


class RouteGateMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, evaluator: AccessEvaluator, codec: TokenCodec, settings: Settings = default_settings):
        super().__init__(app)
        self.evaluator = evaluator
        self.codec = codec
        self.settings = settings

    async def dispatch(self, request: Request, call_next):
        path = normalize_path(request.url.path)

        if self.evaluator.is_public(path):
            return await call_next(request)

        try:
            identity = resolve_identity(extract_credentials(request, self.settings), self.codec)
        except Unauthenticated as exc:
            logger.info(f"401 {request.method} {path}: {exc.detail}")
            return access_error_response(path, exc, self.settings.API_PREFIX)

        decision = self.evaluator.check_route(path, identity.roles)
        if not decision.allowed:
            logger.info(
                f"Denied {request.method} {path} to {identity.id} "
                f"(roles {sorted(identity.roles)}, namespace {decision.rule.namespace})"
            )
            return access_error_response(path, Unauthorized(), self.settings.API_PREFIX)

        request.state.identity = identity
        return await call_next(request)
