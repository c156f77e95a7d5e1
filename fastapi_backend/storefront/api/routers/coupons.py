import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Query, status

from storefront.api import crud, db, pricing
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, bad_request, conflict, envelope, not_found, paginated
from storefront.api.schemas import (
    CouponCheckRequest,
    CouponCreate,
    CouponUpdate,
    DiscountType,
    OrderStatus,
    RecordStatus,
    StatusUpdate,
    changed_fields,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Coupons"])


# PUBLIC_INTERFACE
def find_coupon(code: str, executor=None, *, lock: bool = False) -> Tuple[Optional[Dict[str, Any]], int]:
    """Coupon by code (case-insensitive, not deleted) and how many live orders already used it."""
    executor = executor or db
    coupon = executor.fetch_one(
        "SELECT * FROM coupons WHERE UPPER(code)=UPPER(%s) AND status <> %s" + (" FOR UPDATE" if lock else ""),
        [code.strip(), RecordStatus.deleted.value],
    )
    if not coupon:
        return None, 0
    used = executor.fetch_one(
        "SELECT COUNT(*) AS used FROM orders WHERE coupon_id=%s AND status <> %s",
        [coupon["id"], OrderStatus.canceled.value],
    )
    return coupon, int(used["used"]) if used else 0


def _check_code_free(code: str, exclude_id: Optional[int] = None) -> None:
    if crud.name_taken("coupons", code, column="code", exclude_id=exclude_id):
        raise conflict("A coupon with this code already exists")


@router.get("/coupons/code/{code}", summary="Look up coupon by code")
def get_coupon_by_code(code: str) -> Dict[str, Any]:
    coupon, used = find_coupon(code)
    if not coupon:
        raise not_found("Coupon")
    coupon["usage_count"] = used
    return envelope(coupon, "Coupon retrieved successfully")


@router.post("/coupons/check", summary="Preview coupon discount")
def check_coupon(payload: CouponCheckRequest) -> Dict[str, Any]:
    """Validate a coupon against a subtotal and return the discount it would grant."""
    coupon, used = find_coupon(payload.code)
    try:
        pricing.validate_coupon(coupon, payload.subtotal, usage_count=used)
    except pricing.CouponError as exc:
        raise bad_request(str(exc))
    discount = pricing.coupon_discount(coupon, payload.subtotal)
    return envelope(
        {"code": coupon["code"], "discount": discount, "subtotal_after_discount": payload.subtotal - discount},
        "Coupon is valid",
    )


@router.get("/admin/coupons", tags=["Admin"], summary="List coupons")
def admin_list_coupons(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None, description="Search by code"),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    conditions, params = crud.search_condition(["code"], search)
    if status_filter is not None:
        conditions.append("status=%s")
        params.append(status_filter.value)
    rows, total = crud.list_page("coupons", page, conditions=conditions, params=params)
    return paginated(rows, total, page, "Coupons retrieved successfully")


@router.get("/admin/coupons/{coupon_id}", tags=["Admin"], summary="Get coupon")
def admin_get_coupon(coupon_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    return envelope(crud.get_or_404("coupons", coupon_id, "Coupon"), "Coupon retrieved successfully")


@router.post("/admin/coupons", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create coupon")
def admin_create_coupon(payload: CouponCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    values = payload.model_dump()
    values["code"] = payload.code.strip().upper()
    _check_code_free(values["code"])
    values["discount_type"] = payload.discount_type.value
    values["status"] = RecordStatus.active.value
    row = crud.insert("coupons", values)
    logger.info("Coupon created", extra={"coupon_code": row["code"]})
    return envelope(row, "Coupon created successfully", status.HTTP_201_CREATED)


@router.put("/admin/coupons/{coupon_id}", tags=["Admin"], summary="Update coupon")
def admin_update_coupon(
    coupon_id: int, payload: CouponUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    existing = crud.get_or_404("coupons", coupon_id, "Coupon")
    values = changed_fields(payload)
    if "code" in values:
        values["code"] = values["code"].strip().upper()
        _check_code_free(values["code"], exclude_id=coupon_id)

    merged = {**existing, **values}
    if merged["discount_type"] == DiscountType.percentage.value and merged["discount_value"] > 100:
        raise bad_request("Percentage discount cannot exceed 100")
    start, end = merged.get("start_date"), merged.get("end_date")
    if start and end and pricing.as_utc(end) < pricing.as_utc(start):
        raise bad_request("end_date must not be earlier than start_date")

    row = crud.update("coupons", coupon_id, values, "Coupon")
    return envelope(row, "Coupon updated successfully")


@router.put("/admin/coupons/{coupon_id}/status", tags=["Admin"], summary="Change coupon status")
def admin_update_coupon_status(
    coupon_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    row = crud.set_status("coupons", coupon_id, payload.status, "Coupon")
    return envelope(row, "Coupon status updated successfully")


@router.delete("/admin/coupons/{coupon_id}", tags=["Admin"], summary="Delete coupon")
def admin_delete_coupon(coupon_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    crud.get_or_404("coupons", coupon_id, "Coupon")
    crud.set_status("coupons", coupon_id, RecordStatus.deleted, "Coupon")
    return envelope(None, "Coupon deleted successfully")
