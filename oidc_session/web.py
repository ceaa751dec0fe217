"""
FastAPI binding for a SessionManager.
The app restores the session on startup and refreshes it when it expires; the /session
routes drive login, registration, refresh and logout. Tokens are never returned in responses.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request

from oidc_session import config
from oidc_session.errors import (
    ConfigurationError,
    InvalidMinValidityError,
    MissingRefreshTokenError,
    NotAuthenticatedError,
)
from oidc_session.refresh import AutoRefresher
from oidc_session.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


def get_session_manager(request: Request) -> SessionManager:
    """Dependency: the manager attached by create_app()."""
    return request.app.state.session_manager


def _session_summary(manager: SessionManager) -> dict:
    claims = manager.access_token_claims
    expires_in = manager.get_expires_in()
    return {
        "authenticated": manager.is_authenticated(),
        "subject": claims.subject if claims else None,
        "scope": claims.scope if claims else None,
        "expires_in": round(expires_in) if expires_in is not None else None,
    }


@router.get("")
def session_status(manager: SessionManager = Depends(get_session_manager)):
    """Current authentication state (no token values)."""
    return _session_summary(manager)


@router.post("/login")
async def login(manager: SessionManager = Depends(get_session_manager)):
    if not await manager.login():
        raise HTTPException(
            status_code=401,
            detail={"error": "login_failed", "error_description": "Login failed"},
        )
    return _session_summary(manager)


@router.post("/register")
async def register(manager: SessionManager = Depends(get_session_manager)):
    try:
        ok = await manager.register()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail={"error": "invalid_request", "error_description": str(e)})
    if not ok:
        raise HTTPException(
            status_code=400,
            detail={"error": "registration_failed", "error_description": "No session was created"},
        )
    return _session_summary(manager)


@router.post("/logout")
async def logout(manager: SessionManager = Depends(get_session_manager)):
    """Always logs out locally; storage_cleared is False if the stored session could not be removed."""
    storage_cleared = await manager.logout()
    return {"authenticated": manager.is_authenticated(), "storage_cleared": storage_cleared}


@router.post("/refresh")
async def refresh(
    request: Request,
    min_validity: float | None = None,
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Refresh if the access token expires within min_validity seconds (-1 forces a refresh).
    Without min_validity the app's configured value is used.
    """
    if min_validity is None:
        min_validity = request.app.state.min_validity
    try:
        refreshed = await manager.update_token(min_validity)
    except (MissingRefreshTokenError, InvalidMinValidityError) as e:
        raise HTTPException(status_code=400, detail={"error": "invalid_request", "error_description": str(e)})
    return {"refreshed": refreshed, **_session_summary(manager)}


@router.get("/userinfo")
async def userinfo(manager: SessionManager = Depends(get_session_manager)):
    try:
        return await manager.get_user_info()
    except NotAuthenticatedError:
        raise HTTPException(
            status_code=401,
            detail={"error": "invalid_token", "error_description": "Not authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        logger.warning("User info request failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail={"error": "userinfo_failed", "error_description": "User info request failed"},
        )


def create_app(
    manager: SessionManager,
    *,
    auto_refresh: bool = True,
    min_validity: float | None = None,
) -> FastAPI:
    """
    Build an app around manager. auto_refresh refreshes the session whenever it expires.
    min_validity (seconds) defaults to OIDC_MIN_VALIDITY and applies to automatic
    refreshes and to /session/refresh calls that do not pass their own.
    """
    if min_validity is None:
        min_validity = config.MIN_VALIDITY_SECONDS
    refresher = AutoRefresher(manager, min_validity) if auto_refresh else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Subscribe the refresher before restoring so an already-expired session is refreshed."""
        if refresher is not None:
            refresher.start()
        await manager.init_state()
        yield
        if refresher is not None:
            refresher.stop()

    app = FastAPI(title="OIDC Session", version="0.1.0", lifespan=lifespan)
    app.state.session_manager = manager
    app.state.auto_refresher = refresher
    app.state.min_validity = min_validity
    app.include_router(router)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "oidc_session"}

    return app
