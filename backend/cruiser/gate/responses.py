import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import AccessError, Unauthenticated
from ..core.settings import settings
from ..rbac.policy import normalize_path

logger = logging.getLogger(__name__)


def _is_api_path(path: str, api_prefix: str) -> bool:
    prefix = api_prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def access_error_response(path: str, exc: AccessError, api_prefix: str | None = None) -> JSONResponse:
    """
    401 for a missing or bad credential. A denial is 403 on API paths and a
    plain 404 on UI paths, so pages the caller may not see look absent.
    A store failure answers exactly like a denial.
    """
    if isinstance(exc, Unauthenticated):
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail},
            headers={"WWW-Authenticate": "Bearer"},
        )
    if _is_api_path(normalize_path(path), api_prefix or settings.API_PREFIX):
        return JSONResponse(status_code=403, content={"detail": exc.detail})
    return JSONResponse(status_code=404, content={"detail": "Not Found"})


def register_exception_handlers(app: FastAPI) -> None:
    async def handle_access_error(request: Request, exc: AccessError):
        return access_error_response(request.url.path, exc)

    app.add_exception_handler(AccessError, handle_access_error)
