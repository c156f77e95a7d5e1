import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status

from storefront.api import config, db
from storefront.api.auth_utils import (
    USER_COLUMNS,
    create_user_access_token,
    ensure_user_unique,
    get_current_user,
    hash_password,
    load_user,
    verify_password,
)
from storefront.api.responses import bad_request, envelope
from storefront.api.schemas import LoginRequest, ProfileUpdate, RecordStatus, RegisterRequest, changed_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

CUSTOMER_ROLE = "customer"


def _public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password"}


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register")
def register(payload: RegisterRequest) -> Dict[str, Any]:
    """Create a customer account."""
    email = payload.email.lower()
    ensure_user_unique(payload.username, email)

    role = db.fetch_one("SELECT id FROM roles WHERE LOWER(name)=%s AND status=%s", [CUSTOMER_ROLE, RecordStatus.active.value])
    user = db.execute_returning_one(
        """
        INSERT INTO users (username, email, password, full_name, role_id, status)
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING id, username, email, full_name, role_id, status, created_at
        """,
        [
            payload.username,
            email,
            hash_password(payload.password),
            payload.full_name,
            role["id"] if role else None,
            RecordStatus.active.value,
        ],
    )
    logger.info("User registered", extra={"user_id": user["id"]})
    return envelope(user, "Registered successfully", status.HTTP_201_CREATED)


@router.post("/login", summary="Login")
def login(payload: LoginRequest, response: Response) -> Dict[str, Any]:
    """Authenticate with username/password; returns the token and sets it as an http-only cookie."""
    user = db.fetch_one(
        f"SELECT {USER_COLUMNS}, u.password FROM users u LEFT JOIN roles r ON r.id = u.role_id WHERE u.username=%s",
        [payload.username],
    )
    if (
        not user
        or not verify_password(payload.password, user["password"])
        or user.get("status") != RecordStatus.active
    ):
        logger.warning("Login failed for username=%s", payload.username)
        raise bad_request("Invalid credentials")

    token = create_user_access_token(user)
    response.set_cookie(
        key=config.auth_cookie_name(),
        value=token,
        httponly=True,
        secure=config.auth_cookie_secure(),
        samesite="strict",
        path="/",
        max_age=config.jwt_exp_minutes() * 60,
    )
    return envelope(
        {"access_token": token, "token_type": "bearer", "user": _public_user(user)},
        "Logged in successfully",
    )


@router.post("/logout", summary="Logout")
def logout(response: Response) -> Dict[str, Any]:
    """Clear the auth cookie. Tokens are stateless, so nothing is revoked server side."""
    response.delete_cookie(key=config.auth_cookie_name(), path="/")
    return envelope(None, "Logged out successfully")


@router.get("/profile", summary="Get current user")
def profile(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return envelope(user, "Profile retrieved successfully")


@router.put("/profile", summary="Update current user")
def update_profile(payload: ProfileUpdate, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Update the caller's own name, phone or address."""
    values = changed_fields(payload)
    if not values:
        raise bad_request("Nothing to update")

    set_sql, params = db.update_clause(values)
    db.execute(f"UPDATE users SET {set_sql}, updated_at=NOW() WHERE id=%s", params + [user["id"]])
    return envelope(load_user(user["id"]), "Profile updated successfully")
