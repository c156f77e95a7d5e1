from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.api import crud
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, conflict, envelope, paginated
from storefront.api.schemas import RecordStatus, StatusUpdate, TagCreate, TagUpdate

router = APIRouter(prefix="/tags", tags=["Tags"])


@router.get("", summary="List tags")
def list_tags(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
) -> Dict[str, Any]:
    conditions, params = crud.search_condition(["name"], search)
    if status_filter is not None:
        conditions.append("status=%s")
        params.append(status_filter.value)
    rows, total = crud.list_page("tags", page, conditions=conditions, params=params, order_by="id DESC")
    return paginated(rows, total, page, "Tags retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create tag")
def create_tag(payload: TagCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    if crud.name_taken("tags", payload.name):
        raise conflict("Tag already exists")
    row = crud.insert("tags", payload.model_dump())
    return envelope(row, "Tag created successfully", status.HTTP_201_CREATED)


@router.put("/{tag_id}", summary="Rename tag")
def update_tag(tag_id: int, payload: TagUpdate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    if crud.name_taken("tags", payload.name, exclude_id=tag_id):
        raise conflict("Tag already exists")
    row = crud.update("tags", tag_id, {"name": payload.name}, "Tag")
    return envelope(row, "Tag updated successfully")


@router.put("/{tag_id}/status", summary="Change tag status")
def update_tag_status(tag_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    row = crud.set_status("tags", tag_id, payload.status, "Tag")
    return envelope(row, "Tag status updated successfully")


@router.delete("/{tag_id}", summary="Delete tag")
def delete_tag(tag_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    crud.get_or_404("tags", tag_id, "Tag")
    crud.set_status("tags", tag_id, RecordStatus.deleted, "Tag")
    return envelope(None, "Tag deleted successfully")
