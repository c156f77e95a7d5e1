from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.api import crud
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, conflict, envelope, paginated
from storefront.api.schemas import RecordStatus, RoleCreate, RoleUpdate, StatusUpdate, changed_fields

router = APIRouter(prefix="/admin/roles", tags=["Admin", "Roles"])


@router.get("", summary="List roles")
def list_roles(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name"),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    conditions, params = crud.search_condition(["name"], search)
    if status_filter is not None:
        conditions.append("status=%s")
        params.append(status_filter.value)
    rows, total = crud.list_page("roles", page, conditions=conditions, params=params, order_by="id ASC")
    return paginated(rows, total, page, "Roles retrieved successfully")


@router.get("/{role_id}", summary="Get role")
def get_role(role_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    return envelope(crud.get_or_404("roles", role_id, "Role"), "Role retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create role")
def create_role(payload: RoleCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    if crud.name_taken("roles", payload.name):
        raise conflict("A role with this name already exists")
    row = crud.insert("roles", payload.model_dump())
    return envelope(row, "Role created successfully", status.HTTP_201_CREATED)


@router.put("/{role_id}", summary="Update role")
def update_role(role_id: int, payload: RoleUpdate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    values = changed_fields(payload)
    if "name" in values and crud.name_taken("roles", values["name"], exclude_id=role_id):
        raise conflict("A role with this name already exists")
    return envelope(crud.update("roles", role_id, values, "Role"), "Role updated successfully")


@router.put("/{role_id}/status", summary="Change role status")
def update_role_status(
    role_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    row = crud.set_status("roles", role_id, payload.status, "Role")
    return envelope(row, "Role status updated successfully")
