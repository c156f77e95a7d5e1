"""Image records referenced by products, categories, banners and avatars."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.api import crud
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, envelope, paginated
from storefront.api.schemas import ImageCreate, RecordStatus, StatusUpdate

router = APIRouter(prefix="/images", tags=["Media"])


@router.get("", summary="List images")
def list_images(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None, description="Search in URL and alt text"),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    conditions, params = crud.search_condition(["url", "alt_text"], search)
    rows, total = crud.list_page("images", page, conditions=conditions, params=params)
    return paginated(rows, total, page, "Images retrieved successfully")


@router.get("/{image_id}", summary="Get image")
def get_image(image_id: int) -> Dict[str, Any]:
    return envelope(crud.get_or_404("images", image_id, "Image"), "Image retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Register image")
def create_image(payload: ImageCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    row = crud.insert("images", payload.model_dump())
    return envelope(row, "Image created successfully", status.HTTP_201_CREATED)


@router.put("/{image_id}/status", summary="Change image status")
def update_image_status(
    image_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    row = crud.set_status("images", image_id, payload.status, "Image")
    return envelope(row, "Image status updated successfully")


@router.delete("/{image_id}", summary="Delete image")
def delete_image(image_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    crud.get_or_404("images", image_id, "Image")
    crud.set_status("images", image_id, RecordStatus.deleted, "Image")
    return envelope(None, "Image deleted successfully")
