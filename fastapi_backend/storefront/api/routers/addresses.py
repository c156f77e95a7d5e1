import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status

from storefront.api import db
from storefront.api.auth_utils import get_current_user
from storefront.api.responses import bad_request, envelope, not_found
from storefront.api.schemas import AddressCreate, AddressUpdate, RecordStatus, changed_fields

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Addresses"])

# The default flag lives on user_delivery_addresses, one row per owned address.
ADDRESS_SELECT = """
SELECT da.*, uda.is_default,
       p.name AS province_name, d.name AS district_name, w.name AS ward_name
FROM delivery_addresses da
JOIN user_delivery_addresses uda ON uda.delivery_addresses_id = da.id AND uda.status = 1
LEFT JOIN provinces p ON p.code = da.province_code
LEFT JOIN districts d ON d.code = da.district_code
LEFT JOIN wards w ON w.code = da.ward_code
"""


# =========================
# Locations
# =========================

@router.get("/locations/provinces", tags=["Locations"], summary="List provinces")
def list_provinces() -> Dict[str, Any]:
    rows = db.fetch_all("SELECT * FROM provinces ORDER BY name ASC")
    return envelope(rows, "Provinces retrieved successfully")


@router.get("/locations/provinces/{code}/districts", tags=["Locations"], summary="Districts of a province")
def list_districts(code: str) -> Dict[str, Any]:
    rows = db.fetch_all("SELECT * FROM districts WHERE province_code=%s ORDER BY name ASC", [code])
    return envelope(rows, "Districts retrieved successfully")


@router.get("/locations/districts/{code}/wards", tags=["Locations"], summary="Wards of a district")
def list_wards(code: str) -> Dict[str, Any]:
    rows = db.fetch_all("SELECT * FROM wards WHERE district_code=%s ORDER BY name ASC", [code])
    return envelope(rows, "Wards retrieved successfully")


# =========================
# Delivery addresses
# =========================

def _load_address(address_id: int, user_id: int, executor=None) -> Optional[Dict[str, Any]]:
    executor = executor or db
    return executor.fetch_one(
        f"{ADDRESS_SELECT} WHERE da.id=%s AND da.user_id=%s AND da.status=%s",
        [address_id, user_id, RecordStatus.active.value],
    )


def _check_location(tx, province_code: str, district_code: str, ward_code: str) -> None:
    """Reject codes that do not nest province > district > ward."""
    match = tx.fetch_one(
        """
        SELECT w.code FROM wards w
        JOIN districts d ON d.code = w.district_code
        WHERE w.code=%s AND d.code=%s AND d.province_code=%s
        """,
        [ward_code, district_code, province_code],
    )
    if not match:
        raise bad_request("Province, district and ward do not match")


def _clear_other_defaults(tx, user_id: int, keep_id: int) -> None:
    tx.execute(
        """
        UPDATE user_delivery_addresses SET is_default=FALSE, updated_at=NOW()
        WHERE user_id=%s AND status=%s AND delivery_addresses_id <> %s
        """,
        [user_id, RecordStatus.active.value, keep_id],
    )


@router.get("/addresses", summary="List my delivery addresses")
def list_addresses(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Caller's active addresses, default first."""
    rows = db.fetch_all(
        f"{ADDRESS_SELECT} WHERE da.user_id=%s AND da.status=%s ORDER BY uda.is_default DESC, da.created_at DESC",
        [user["id"], RecordStatus.active.value],
    )
    return envelope(rows, "Addresses retrieved successfully")


@router.get("/addresses/{address_id}", summary="Get delivery address")
def get_address(address_id: int, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    address = _load_address(address_id, user["id"])
    if not address:
        raise not_found("Address")
    return envelope(address, "Address retrieved successfully")


@router.post("/addresses", status_code=status.HTTP_201_CREATED, summary="Add delivery address")
def create_address(payload: AddressCreate, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Add an address; ``is_default`` clears the flag on the caller's other addresses."""
    with db.transaction() as tx:
        _check_location(tx, payload.province_code, payload.district_code, payload.ward_code)
        row = tx.execute_returning_one(
            """
            INSERT INTO delivery_addresses
                (user_id, province_code, district_code, ward_code, postal_code, phone_number, address, status)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
            """,
            [
                user["id"],
                payload.province_code,
                payload.district_code,
                payload.ward_code,
                payload.postal_code,
                payload.phone_number,
                payload.address,
                RecordStatus.active.value,
            ],
        )
        tx.execute(
            """
            INSERT INTO user_delivery_addresses (user_id, delivery_addresses_id, is_default, status)
            VALUES (%s, %s, %s, %s)
            """,
            [user["id"], row["id"], payload.is_default, RecordStatus.active.value],
        )
        if payload.is_default:
            _clear_other_defaults(tx, user["id"], row["id"])
        created = _load_address(row["id"], user["id"], tx)
    logger.info("Delivery address added", extra={"user_id": user["id"]})
    return envelope(created, "Address created successfully", status.HTTP_201_CREATED)


@router.put("/addresses/{address_id}", summary="Update delivery address")
def update_address(
    address_id: int, payload: AddressUpdate, user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    values = changed_fields(payload, exclude={"is_default"})
    if not values and payload.is_default is None:
        raise bad_request("Nothing to update")

    with db.transaction() as tx:
        existing = tx.fetch_one(
            "SELECT * FROM delivery_addresses WHERE id=%s AND user_id=%s AND status=%s FOR UPDATE",
            [address_id, user["id"], RecordStatus.active.value],
        )
        if not existing:
            raise not_found("Address")
        if {"province_code", "district_code", "ward_code"} & values.keys():
            merged = {**existing, **values}
            _check_location(tx, merged["province_code"], merged["district_code"], merged["ward_code"])
        if values:
            set_sql, params = db.update_clause(values)
            tx.execute(f"UPDATE delivery_addresses SET {set_sql}, updated_at=NOW() WHERE id=%s", params + [address_id])
        if payload.is_default is not None:
            tx.execute(
                """
                UPDATE user_delivery_addresses SET is_default=%s, updated_at=NOW()
                WHERE delivery_addresses_id=%s AND user_id=%s
                """,
                [payload.is_default, address_id, user["id"]],
            )
            if payload.is_default:
                _clear_other_defaults(tx, user["id"], address_id)
        updated = _load_address(address_id, user["id"], tx)
    return envelope(updated, "Address updated successfully")


@router.delete("/addresses/{address_id}", summary="Delete delivery address")
def delete_address(address_id: int, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    with db.transaction() as tx:
        removed = tx.execute(
            "UPDATE delivery_addresses SET status=%s, updated_at=NOW() WHERE id=%s AND user_id=%s AND status=%s",
            [RecordStatus.deleted.value, address_id, user["id"], RecordStatus.active.value],
        )
        if not removed:
            raise not_found("Address")
        tx.execute(
            """
            UPDATE user_delivery_addresses SET status=%s, is_default=FALSE, updated_at=NOW()
            WHERE delivery_addresses_id=%s AND user_id=%s
            """,
            [RecordStatus.deleted.value, address_id, user["id"]],
        )
    return envelope(None, "Address deleted successfully")
