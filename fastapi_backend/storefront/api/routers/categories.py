from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.api import crud, db
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, conflict, envelope, paginated
from storefront.api.schemas import CategoryCreate, CategoryUpdate, RecordStatus, StatusUpdate, changed_fields

router = APIRouter(tags=["Categories"])


def _slug_taken(slug: str, exclude_id: Optional[int] = None) -> bool:
    return crud.name_taken("categories", slug, column="slug", exclude_id=exclude_id)


@router.get("/categories", summary="List active categories")
def list_categories() -> Dict[str, Any]:
    """Storefront navigation: every active category with its image."""
    rows = db.fetch_all(
        """
        SELECT c.*, i.url AS image_url
        FROM categories c
        LEFT JOIN images i ON i.id = c.image_id
        WHERE c.status=%s
        ORDER BY c.name ASC
        """,
        [RecordStatus.active.value],
    )
    return envelope(rows, "Categories retrieved successfully")


@router.get("/admin/categories", tags=["Admin"], summary="List categories (admin)")
def admin_list_categories(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None, description="Search in name and content"),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    conditions, params = crud.search_condition(["name", "content"], search)
    if status_filter is not None:
        conditions.append("status=%s")
        params.append(status_filter.value)
    rows, total = crud.list_page("categories", page, conditions=conditions, params=params)
    return paginated(rows, total, page, "Categories retrieved successfully")


@router.get("/admin/categories/{category_id}", tags=["Admin"], summary="Get category")
def admin_get_category(category_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    return envelope(crud.get_or_404("categories", category_id, "Category"), "Category retrieved successfully")


@router.post("/admin/categories", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create category")
def admin_create_category(payload: CategoryCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    if _slug_taken(payload.slug):
        raise conflict("A category with this slug already exists")
    row = crud.insert("categories", payload.model_dump())
    return envelope(row, "Category created successfully", status.HTTP_201_CREATED)


@router.put("/admin/categories/{category_id}", tags=["Admin"], summary="Update category")
def admin_update_category(
    category_id: int, payload: CategoryUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    if payload.slug and _slug_taken(payload.slug, exclude_id=category_id):
        raise conflict("A category with this slug already exists")
    row = crud.update("categories", category_id, changed_fields(payload), "Category")
    return envelope(row, "Category updated successfully")


@router.put("/admin/categories/{category_id}/status", tags=["Admin"], summary="Change category status")
def admin_update_category_status(
    category_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    row = crud.set_status("categories", category_id, payload.status, "Category")
    return envelope(row, "Category status updated successfully")


@router.delete("/admin/categories/{category_id}", tags=["Admin"], summary="Delete category")
def admin_delete_category(category_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    crud.get_or_404("categories", category_id, "Category")
    crud.set_status("categories", category_id, RecordStatus.deleted, "Category")
    return envelope(None, "Category deleted successfully")
