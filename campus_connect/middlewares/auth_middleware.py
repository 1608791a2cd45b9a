from typing import Callable, Optional, Set, Tuple
from fastapi import Depends, Request, Response
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from campus_connect.config.settings import settings
from campus_connect.db.models import User
from campus_connect.db.session import get_sync_session
from campus_connect.utils.auth import AuthUtils
from campus_connect.utils.context import set_user_id
from campus_connect.utils.errors import AuthenticationError, AuthorizationError
from campus_connect.utils.responses import ResponseBuilder
from campus_connect.utils.logging import get_logger

logger = get_logger()


class AuthState:
    """Authentication state to be stored in request.state"""

    def __init__(
        self,
        user_id: int,
        email: str,
        role: str,
        is_authenticated: bool = True,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.is_authenticated = is_authenticated

    @classmethod
    def from_user(cls, user: User) -> "AuthState":
        return cls(user_id=user.id, email=user.email, role=user.role.value)


def load_active_user(db_session: Session, token: Optional[str]) -> Optional[User]:
    """Resolve a bearer token to its user row, None when either is invalid.

    The role is always taken from the row, never from the token claims.
    """
    if not token:
        return None
    user_id = AuthUtils.user_id_from_token(token)
    if user_id is None:
        return None
    stmt = (
        select(User)
        .options(selectinload(User.student_profile))
        .where(User.id == user_id)
    )
    return db_session.execute(stmt).scalar_one_or_none()


class AuthMiddleware(BaseHTTPMiddleware):
    """Bearer JWT authentication that re-derives identity from the database"""

    EXCLUDED_PATHS: Set[str] = {
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        f"{settings.API_PREFIX}/health",
        f"{settings.API_PREFIX}/auth/register",
        f"{settings.API_PREFIX}/auth/login",
        f"{settings.API_PREFIX}/auth/google",
    }

    # (method, path) pairs where a token is honoured but not required
    OPTIONAL_AUTH_PATHS: Set[Tuple[str, str]] = {
        ("POST", f"{settings.API_PREFIX}/feedback"),
    }

    def __init__(self, app, excluded_paths: Optional[set] = None):
        super().__init__(app)
        self.excluded_paths = set(self.EXCLUDED_PATHS)
        if excluded_paths:
            self.excluded_paths.update(excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through authentication middleware"""
        if self._should_skip_auth(request):
            return await call_next(request)

        optional = self._is_optional_auth(request)
        token = AuthUtils.extract_bearer_token(request.headers.get("authorization"))

        if not token and optional:
            return await call_next(request)

        try:
            if not token:
                raise AuthenticationError("Access token required", "TOKEN_MISSING")

            user = await run_in_threadpool(self._get_user_from_db, request, token)
            if not user:
                raise AuthenticationError(
                    "Invalid or expired token", "TOKEN_INVALID"
                )

            request.state.auth = AuthState.from_user(user)
            set_user_id(user.id)
            return await call_next(request)

        except AuthenticationError as e:
            if optional:
                return await call_next(request)
            logger.warning(f"Rejected {request.method} {request.url.path}: {e.message}")
            return ResponseBuilder.error(
                request=request,
                message=e.message,
                error_code=e.error_code,
                status_code=401,
            )

    def _should_skip_auth(self, request: Request) -> bool:
        """Check if the request should skip authentication."""
        return request.method == "OPTIONS" or self._is_excluded_path(request.url.path)

    def _is_excluded_path(self, path: str) -> bool:
        """Check if path is excluded from authentication"""
        return any(path.startswith(excluded) for excluded in self.excluded_paths)

    def _is_optional_auth(self, request: Request) -> bool:
        path = request.url.path.rstrip("/")
        return (request.method, path) in self.OPTIONAL_AUTH_PATHS

    @staticmethod
    def _get_user_from_db(request: Request, token: str) -> Optional[User]:
        """Loads the token's user through the (possibly overridden) session dependency."""
        provider = request.app.dependency_overrides.get(
            get_sync_session, get_sync_session
        )
        sessions = provider()
        try:
            return load_active_user(next(sessions), token)
        finally:
            sessions.close()


# Dependency for getting current user from request state
def get_current_user(request: Request) -> AuthState:
    """Dependency to get current authenticated user from request state"""
    auth_state = getattr(request.state, "auth", None)

    if not auth_state or not auth_state.is_authenticated:
        raise AuthenticationError("Not authenticated", "NOT_AUTHENTICATED")

    return auth_state


def get_optional_user(request: Request) -> Optional[AuthState]:
    """Dependency for routes that accept anonymous callers"""
    return getattr(request.state, "auth", None)


# Dependency for requiring specific roles
def require_role(*allowed_roles: str):
    """Create dependency that requires one of the given roles"""

    def check_role(
        current_user: AuthState = Depends(get_current_user),
    ) -> AuthState:
        if current_user.role not in allowed_roles:
            if allowed_roles == ("admin",):
                raise AuthorizationError("Admin access required", "ADMIN_REQUIRED")
            if allowed_roles == ("student",):
                raise AuthorizationError(
                    "Only students can use this feature", "STUDENT_ONLY"
                )
            raise AuthorizationError(
                "Insufficient permissions", "INSUFFICIENT_PERMISSIONS"
            )
        return current_user

    return check_role


# Pre-defined dependencies for common roles
require_student = require_role("student")
require_admin = require_role("admin")
