import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from storefront.api import config, db
from storefront.api.responses import conflict
from storefront.api.schemas import RecordStatus

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_bearer = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"

USER_COLUMNS = (
    "u.id, u.username, u.email, u.full_name, u.phone, u.address, u.avatar_id, "
    "u.role_id, r.name AS role_name, u.status, u.created_at, u.updated_at"
)


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        # Stored value is not a recognisable hash.
        return False


def _create_access_token(payload: Dict[str, Any], expires_delta: timedelta) -> str:
    to_encode = payload.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.jwt_secret(), algorithm=config.jwt_algorithm())


# PUBLIC_INTERFACE
def create_user_access_token(user: Dict[str, Any]) -> str:
    """Create a JWT access token for a user row (needs id, username, role_id, role_name)."""
    return _create_access_token(
        {
            "sub": str(user["id"]),
            "username": user["username"],
            "role_id": user.get("role_id"),
            "role_name": user.get("role_name"),
        },
        expires_delta=timedelta(minutes=config.jwt_exp_minutes()),
    )


# PUBLIC_INTERFACE
def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry, returning the claims; raises 401 otherwise."""
    try:
        payload = jwt.decode(token, config.jwt_secret(), algorithms=[config.jwt_algorithm()])
    except JWTError:
        raise _unauthorized("Invalid token")
    if not payload.get("sub"):
        raise _unauthorized("Invalid token payload")
    return payload


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _token_from_request(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(config.auth_cookie_name())


# PUBLIC_INTERFACE
def load_user(user_id: int) -> Optional[Dict[str, Any]]:
    """User row joined with its role name, or None."""
    return db.fetch_one(
        f"SELECT {USER_COLUMNS} FROM users u LEFT JOIN roles r ON r.id = u.role_id WHERE u.id=%s",
        [user_id],
    )


# PUBLIC_INTERFACE
def ensure_user_unique(
    username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None
) -> None:
    """Raise 409 when another non-deleted account has the username or email (case-insensitive)."""

    def taken(column: str, value: str) -> bool:
        query = f"SELECT id FROM users WHERE LOWER({column})=LOWER(%s) AND status <> %s"
        params: List[Any] = [value, RecordStatus.deleted.value]
        if exclude_id is not None:
            query += " AND id <> %s"
            params.append(exclude_id)
        return db.fetch_one(query, params) is not None

    if username and taken("username", username):
        raise conflict("Username already taken")
    if email and taken("email", email):
        raise conflict("Email already registered")


# PUBLIC_INTERFACE
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Dependency returning the authenticated user; accepts a bearer header or the auth cookie."""
    token = _token_from_request(request, credentials)
    if not token:
        raise _unauthorized()

    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")

    user = load_user(user_id)
    if not user or user.get("status") != RecordStatus.active:
        raise _unauthorized("User inactive or not found")
    return user


# PUBLIC_INTERFACE
def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Dependency that ensures the current user has admin role."""
    if user.get("role_name") != ADMIN_ROLE:
        logger.warning("Admin access denied", extra={"user_id": user.get("id")})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
