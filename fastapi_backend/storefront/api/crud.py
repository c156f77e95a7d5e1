"""
Query helpers for the plain admin-managed tables (components, tags, roles, ...).

Table and column names passed here always come from code or request models;
values are always bound as parameters.
"""
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from storefront.api import db
from storefront.api.responses import PageParams, bad_request, not_found
from storefront.api.schemas import RecordStatus


def _where(conditions: Sequence[str]) -> str:
    return ("WHERE " + " AND ".join(conditions)) if conditions else ""


# PUBLIC_INTERFACE
def list_page(
    table: str,
    page: PageParams,
    *,
    conditions: Optional[List[str]] = None,
    params: Optional[List[Any]] = None,
    order_by: str = "created_at DESC",
) -> Tuple[List[Dict[str, Any]], int]:
    """One page of non-deleted rows plus the total row count."""
    conditions = ["status <> %s"] + list(conditions or [])
    params = [RecordStatus.deleted.value] + list(params or [])
    where_sql = _where(conditions)

    count = db.fetch_one(f"SELECT COUNT(*) AS total FROM {table} {where_sql}", params)
    rows = db.fetch_all(
        f"SELECT * FROM {table} {where_sql} ORDER BY {order_by} LIMIT %s OFFSET %s",
        params + [page.limit, page.offset],
    )
    return rows, int(count["total"]) if count else 0


# PUBLIC_INTERFACE
def search_condition(columns: Sequence[str], term: Optional[str]) -> Tuple[List[str], List[Any]]:
    """Case-insensitive substring match over ``columns``; empty when ``term`` is blank."""
    if not term:
        return [], []
    clause = "(" + " OR ".join(f"{col} ILIKE %s" for col in columns) + ")"
    return [clause], [f"%{term}%"] * len(columns)


# PUBLIC_INTERFACE
def get_or_404(table: str, row_id: int, entity: str) -> Dict[str, Any]:
    """Non-deleted row by id."""
    row = db.fetch_one(f"SELECT * FROM {table} WHERE id=%s AND status <> %s", [row_id, RecordStatus.deleted.value])
    if not row:
        raise not_found(entity)
    return row


# PUBLIC_INTERFACE
def insert(table: str, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Insert one row and return it."""
    columns = ", ".join(values)
    placeholders = ", ".join(["%s"] * len(values))
    return db.execute_returning_one(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING *",
        list(values.values()),
    )


# PUBLIC_INTERFACE
def update(table: str, row_id: int, values: Mapping[str, Any], entity: str) -> Dict[str, Any]:
    """Update the given columns of a non-deleted row and return it."""
    if not values:
        raise bad_request("Nothing to update")
    set_sql, params = db.update_clause(values)
    row = db.execute_returning_one(
        f"UPDATE {table} SET {set_sql}, updated_at=NOW() WHERE id=%s AND status <> %s RETURNING *",
        params + [row_id, RecordStatus.deleted.value],
    )
    if not row:
        raise not_found(entity)
    return row


# PUBLIC_INTERFACE
def set_status(table: str, row_id: int, new_status: RecordStatus, entity: str) -> Dict[str, Any]:
    """Change the status flag; setting ``deleted`` is a soft delete."""
    row = db.execute_returning_one(
        f"UPDATE {table} SET status=%s, updated_at=NOW() WHERE id=%s RETURNING *",
        [int(new_status), row_id],
    )
    if not row:
        raise not_found(entity)
    return row


# PUBLIC_INTERFACE
def name_taken(table: str, name: str, *, column: str = "name", exclude_id: Optional[int] = None) -> bool:
    """Case-insensitive uniqueness check among non-deleted rows."""
    query = f"SELECT id FROM {table} WHERE LOWER({column})=LOWER(%s) AND status <> %s"
    params: List[Any] = [name, RecordStatus.deleted.value]
    if exclude_id is not None:
        query += " AND id <> %s"
        params.append(exclude_id)
    return db.fetch_one(query, params) is not None
