import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.api import db
from storefront.api.auth_utils import USER_COLUMNS, ensure_user_unique, hash_password, require_admin
from storefront.api.responses import PageParams, bad_request, envelope, not_found, paginated
from storefront.api.schemas import RecordStatus, StatusUpdate, UserCreate, UserUpdate, changed_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/users", tags=["Admin", "Users"])

USER_SELECT = f"""
SELECT {USER_COLUMNS}, i.url AS avatar_url
FROM users u
LEFT JOIN roles r ON r.id = u.role_id
LEFT JOIN images i ON i.id = u.avatar_id
"""


def _load(user_id: int) -> Optional[Dict[str, Any]]:
    return db.fetch_one(f"{USER_SELECT} WHERE u.id=%s AND u.status <> %s", [user_id, RecordStatus.deleted.value])


def _check_role(role_id: Optional[int]) -> None:
    if role_id is not None and not db.fetch_one(
        "SELECT id FROM roles WHERE id=%s AND status <> %s", [role_id, RecordStatus.deleted.value]
    ):
        raise bad_request("Role not found")


@router.get("", summary="List users")
def list_users(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None, description="Username, email or full name"),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    where = ["u.status <> %s"]
    params: List[Any] = [RecordStatus.deleted.value]
    if search:
        where.append("(u.username ILIKE %s OR u.email ILIKE %s OR u.full_name ILIKE %s)")
        params.extend([f"%{search}%"] * 3)
    if status_filter is not None:
        where.append("u.status=%s")
        params.append(status_filter.value)
    where_sql = " AND ".join(where)

    count = db.fetch_one(f"SELECT COUNT(*) AS total FROM users u WHERE {where_sql}", params)
    rows = db.fetch_all(
        f"{USER_SELECT} WHERE {where_sql} ORDER BY u.id DESC LIMIT %s OFFSET %s",
        params + [page.limit, page.offset],
    )
    return paginated(rows, count["total"] if count else 0, page, "Users retrieved successfully")


@router.get("/{user_id}", summary="Get user")
def get_user(user_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    user = _load(user_id)
    if not user:
        raise not_found("User")
    return envelope(user, "User retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create user")
def create_user(payload: UserCreate, admin: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    email = payload.email.lower()
    ensure_user_unique(payload.username, email)
    _check_role(payload.role_id)

    row = db.execute_returning_one(
        """
        INSERT INTO users (username, password, email, full_name, phone, address, avatar_id, role_id, status)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        [
            payload.username,
            hash_password(payload.password),
            email,
            payload.full_name,
            payload.phone,
            payload.address,
            payload.avatar_id,
            payload.role_id,
            payload.status,
        ],
    )
    logger.info("User %s created by admin %s", row["id"], admin["id"], extra={"user_id": row["id"]})
    return envelope(_load(row["id"]), "User created successfully", status.HTTP_201_CREATED)


@router.put("/{user_id}", summary="Update user")
def update_user(user_id: int, payload: UserUpdate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    values = changed_fields(payload)
    if not values:
        raise bad_request("Nothing to update")
    if not _load(user_id):
        raise not_found("User")

    if "email" in values:
        values["email"] = values["email"].lower()
    ensure_user_unique(values.get("username"), values.get("email"), exclude_id=user_id)
    _check_role(values.get("role_id"))
    if "password" in values:
        values["password"] = hash_password(values["password"])

    set_sql, params = db.update_clause(values)
    db.execute(f"UPDATE users SET {set_sql}, updated_at=NOW() WHERE id=%s", params + [user_id])
    return envelope(_load(user_id), "User updated successfully")


@router.put("/{user_id}/status", summary="Change user status")
def update_user_status(
    user_id: int, payload: StatusUpdate, admin: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    """Ban, deactivate, reactivate or delete an account."""
    if user_id == admin["id"] and payload.status != RecordStatus.active:
        raise bad_request("You cannot change the status of your own account")
    changed = db.execute(
        "UPDATE users SET status=%s, updated_at=NOW() WHERE id=%s", [payload.status.value, user_id]
    )
    if not changed:
        raise not_found("User")
    logger.info("User status set to %s", payload.status.name, extra={"user_id": user_id})
    return envelope({"id": user_id, "status": payload.status.value}, "User status updated successfully")
