from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from psycopg2.extras import Json

from storefront.api import crud, db
from storefront.api.auth_utils import get_current_user, require_admin
from storefront.api.responses import conflict, envelope
from storefront.api.schemas import PaymentMethodCreate, RecordStatus, StatusUpdate

router = APIRouter(tags=["Payment methods"])


@router.get("/payment-methods", summary="List payment methods")
def list_payment_methods(_: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Payment methods checkout will accept: ACTIVE and switched on."""
    rows = db.fetch_all(
        "SELECT * FROM payment_methods WHERE status=%s AND is_active ORDER BY created_at DESC",
        [RecordStatus.active.value],
    )
    return envelope(rows, "Payment methods retrieved successfully")


@router.post(
    "/admin/payment-methods", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create payment method"
)
def admin_create_payment_method(
    payload: PaymentMethodCreate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    if crud.name_taken("payment_methods", payload.code, column="code"):
        raise conflict("A payment method with this code already exists")
    values = payload.model_dump()
    values["config"] = Json(payload.config) if payload.config is not None else None
    values["status"] = RecordStatus.active.value
    row = crud.insert("payment_methods", values)
    return envelope(row, "Payment method created successfully", status.HTTP_201_CREATED)


@router.put("/admin/payment-methods/{method_id}/status", tags=["Admin"], summary="Change payment method status")
def admin_update_payment_method_status(
    method_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    row = crud.set_status("payment_methods", method_id, payload.status, "Payment method")
    return envelope(row, "Payment method status updated successfully")
