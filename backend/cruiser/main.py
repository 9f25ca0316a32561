from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.database import create_db_and_tables
from .core.init_db import init_db
from .core.log_config import configure_logging
from .core.settings import settings
from .models.User import User  # Import models to register them with SQLModel
from .models.Role import Role, UserRole
from .models.Capability import Capability, RoleCapability
from .models.Audit import ActivityLog
from .models.RefreshToken import RefreshToken
from .auth.tokens import TokenCodec
from .gate.middleware import RouteGateMiddleware
from .gate.responses import register_exception_handlers
from .rbac.evaluator import AccessEvaluator
from .rbac.policy import AccessPolicy, get_policy

from .auth.router import router as auth_router
from .users.router import router as users_router
from .roles.router import router as roles_router
from .audit.router import router as audit_router


def create_app(policy: AccessPolicy | None = None, codec: TokenCodec | None = None) -> FastAPI:
    """
    Builds the app. An inconsistent policy or a missing signing key fails
    here, before anything is served.
    """
    configure_logging(settings.LOG_LEVEL)

    policy = policy or get_policy()
    codec = codec or TokenCodec.from_settings(settings)
    evaluator = AccessEvaluator(policy, settings.API_PREFIX)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_db_and_tables()
        init_db(policy=policy)
        yield

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)
    app.state.policy = policy
    app.state.token_codec = codec

    register_exception_handlers(app)
    app.add_middleware(RouteGateMiddleware, evaluator=evaluator, codec=codec, settings=settings)

    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(users_router, prefix=settings.API_PREFIX)
    app.include_router(roles_router, prefix=settings.API_PREFIX)
    app.include_router(audit_router, prefix=settings.API_PREFIX)

    @app.get(f"{settings.API_PREFIX}/health")
    def health():
        return {"status": "ok"}

    @app.get(f"{settings.API_PREFIX}/version")
    def version():
        return {"name": settings.PROJECT_NAME, "version": settings.VERSION}

    return app


app = create_app()
