from typing import Any, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, Query, status

from storefront.api import crud, db
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, bad_request, envelope, not_found, paginated
from storefront.api.schemas import BannerCreate, BannerUpdate, RecordStatus, StatusUpdate, changed_fields

router = APIRouter(tags=["Banners"])

BANNER_SELECT = """
SELECT b.*,
       COALESCE((SELECT ARRAY_AGG(bi.image_id ORDER BY bi.id) FROM banner_images bi
                 WHERE bi.banner_id = b.id AND bi.status=1), '{}') AS image_ids,
       COALESCE((SELECT ARRAY_AGG(i.url ORDER BY bi.id) FROM banner_images bi JOIN images i ON i.id = bi.image_id
                 WHERE bi.banner_id = b.id AND bi.status=1), '{}') AS image_urls
FROM banners b
"""


def _replace_images(tx, banner_id: int, image_ids: Sequence[int]) -> None:
    tx.execute("DELETE FROM banner_images WHERE banner_id=%s", [banner_id])
    for image_id in dict.fromkeys(image_ids):
        tx.execute(
            "INSERT INTO banner_images (banner_id, image_id, status) VALUES (%s, %s, %s)",
            [banner_id, image_id, RecordStatus.active.value],
        )


def _load_banner(banner_id: int, executor=None) -> Optional[Dict[str, Any]]:
    executor = executor or db
    return executor.fetch_one(f"{BANNER_SELECT} WHERE b.id=%s AND b.status <> %s", [banner_id, RecordStatus.deleted.value])


@router.get("/banners/position", summary="Banners for a page slot")
def banners_by_position(
    location: str = Query(..., min_length=1, description="Page, e.g. 'home'"),
    position: Optional[str] = Query(None, description="Slot within the page, e.g. 'top'"),
) -> Dict[str, Any]:
    """Active banners for a storefront location, optionally narrowed to one position."""
    where: List[str] = ["b.status=%s", "b.location=%s"]
    params: List[Any] = [RecordStatus.active.value, location]
    if position:
        where.append("b.position=%s")
        params.append(position)
    rows = db.fetch_all(f"{BANNER_SELECT} WHERE {' AND '.join(where)} ORDER BY b.created_at DESC", params)
    return envelope(rows, "Banners retrieved successfully")


@router.get("/admin/banners", tags=["Admin"], summary="List banners")
def admin_list_banners(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    where = ["b.status <> %s"]
    params: List[Any] = [RecordStatus.deleted.value]
    if search:
        where.append("b.name ILIKE %s")
        params.append(f"%{search}%")
    where_sql = " AND ".join(where)
    count = db.fetch_one(f"SELECT COUNT(*) AS total FROM banners b WHERE {where_sql}", params)
    rows = db.fetch_all(
        f"{BANNER_SELECT} WHERE {where_sql} ORDER BY b.created_at DESC LIMIT %s OFFSET %s",
        params + [page.limit, page.offset],
    )
    return paginated(rows, count["total"] if count else 0, page, "Banners retrieved successfully")


@router.get("/admin/banners/{banner_id}", tags=["Admin"], summary="Get banner")
def admin_get_banner(banner_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    banner = _load_banner(banner_id)
    if not banner:
        raise not_found("Banner")
    return envelope(banner, "Banner retrieved successfully")


@router.post("/admin/banners", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create banner")
def admin_create_banner(payload: BannerCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    with db.transaction() as tx:
        banner = tx.execute_returning_one(
            "INSERT INTO banners (name, location, position, status) VALUES (%s, %s, %s, %s) RETURNING id",
            [payload.name, payload.location, payload.position, payload.status],
        )
        _replace_images(tx, banner["id"], payload.image_ids)
        created = _load_banner(banner["id"], tx)
    return envelope(created, "Banner created successfully", status.HTTP_201_CREATED)


@router.put("/admin/banners/{banner_id}", tags=["Admin"], summary="Update banner")
def admin_update_banner(
    banner_id: int, payload: BannerUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    values = changed_fields(payload, exclude={"image_ids"})
    if not values and payload.image_ids is None:
        raise bad_request("Nothing to update")

    with db.transaction() as tx:
        existing = tx.fetch_one(
            "SELECT id FROM banners WHERE id=%s AND status <> %s FOR UPDATE", [banner_id, RecordStatus.deleted.value]
        )
        if not existing:
            raise not_found("Banner")
        if values:
            set_sql, params = db.update_clause(values)
            tx.execute(f"UPDATE banners SET {set_sql}, updated_at=NOW() WHERE id=%s", params + [banner_id])
        if payload.image_ids is not None:
            _replace_images(tx, banner_id, payload.image_ids)
        updated = _load_banner(banner_id, tx)
    return envelope(updated, "Banner updated successfully")


@router.put("/admin/banners/{banner_id}/status", tags=["Admin"], summary="Change banner status")
def admin_update_banner_status(
    banner_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    row = crud.set_status("banners", banner_id, payload.status, "Banner")
    return envelope(row, "Banner status updated successfully")


@router.delete("/admin/banners/{banner_id}", tags=["Admin"], summary="Delete banner")
def admin_delete_banner(banner_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    crud.get_or_404("banners", banner_id, "Banner")
    crud.set_status("banners", banner_id, RecordStatus.deleted, "Banner")
    return envelope(None, "Banner deleted successfully")
