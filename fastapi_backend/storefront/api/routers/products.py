import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, Query, status

from storefront.api import crud, db
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, bad_request, envelope, not_found, paginated
from storefront.api.schemas import (
    OrderStatus,
    ProductCreate,
    ProductSort,
    ProductUpdate,
    RecordStatus,
    StatusUpdate,
    changed_fields,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Products"])

# payload field -> (link table, link column, target table, name column alias)
RELATIONS = {
    "category_ids": ("product_categories", "category_id", "categories", "category_names"),
    "ram_ids": ("product_ram", "ram_id", "ram", "ram_names"),
    "storage_ids": ("product_hard_drives", "hard_id", "hard_drives", "storage_names"),
    "cpu_ids": ("product_cpus", "cpu_id", "cpus", "cpu_names"),
    "graphics_card_ids": ("product_graphics_cards", "graphics_card_id", "graphics_cards", "graphics_card_names"),
    "display_ids": ("product_displays", "display_id", "displays", "display_names"),
    "tag_ids": ("product_tags", "tag_id", "tags", "tag_names"),
}
RELATION_FIELDS = set(RELATIONS) | {"image_ids"}

_SORTS = {
    ProductSort.newest: "p.created_at DESC",
    ProductSort.price_asc: "p.price ASC, p.id DESC",
    ProductSort.price_desc: "p.price DESC, p.id DESC",
}


def _relation_columns() -> str:
    parts = []
    for field, (link, col, target, names) in RELATIONS.items():
        parts.append(
            f"COALESCE((SELECT ARRAY_AGG(l.{col} ORDER BY l.{col}) FROM {link} l WHERE l.product_id = p.id), '{{}}') AS {field}"
        )
        parts.append(
            f"COALESCE((SELECT ARRAY_AGG(t.name ORDER BY t.name) FROM {link} l JOIN {target} t ON t.id = l.{col} "
            f"WHERE l.product_id = p.id), '{{}}') AS {names}"
        )
    parts.append(
        "COALESCE((SELECT ARRAY_AGG(pi.image_id ORDER BY pi.display_order) FROM product_images pi "
        "WHERE pi.product_id = p.id), '{}') AS image_ids"
    )
    parts.append(
        "COALESCE((SELECT ARRAY_AGG(im.url ORDER BY pi.display_order) FROM product_images pi "
        "JOIN images im ON im.id = pi.image_id WHERE pi.product_id = p.id), '{}') AS image_urls"
    )
    return ",\n       ".join(parts)


PRODUCT_SELECT = f"""
SELECT p.*, th.url AS thumbnail_url, th.alt_text AS thumbnail_alt_text,
       {_relation_columns()}
FROM products p
LEFT JOIN images th ON th.id = p.thumbnail_id
"""


# PUBLIC_INTERFACE
def slugify(name: str) -> str:
    """URL slug: accents stripped, lower-case, runs of other characters collapsed to '-'."""
    text = name.replace("đ", "d").replace("Đ", "D")
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "product"


def _unique_slug(tx, name: str, exclude_id: Optional[int] = None) -> str:
    base = slugify(name)
    rows = tx.fetch_all(
        "SELECT id, slug FROM products WHERE (slug=%s OR slug LIKE %s)",
        [base, f"{base}-%"],
    )
    taken = {r["slug"] for r in rows if r["id"] != exclude_id}
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def _sync_relations(tx, product_id: int, values: Dict[str, Optional[Sequence[int]]]) -> None:
    """Replace the link rows for every relation present in ``values``."""
    for field, ids in values.items():
        if ids is None:
            continue
        if field == "image_ids":
            tx.execute("DELETE FROM product_images WHERE product_id=%s", [product_id])
            for order, image_id in enumerate(ids, start=1):
                tx.execute(
                    "INSERT INTO product_images (product_id, image_id, display_order) VALUES (%s, %s, %s)",
                    [product_id, image_id, order],
                )
            continue
        link, col, _, _ = RELATIONS[field]
        tx.execute(f"DELETE FROM {link} WHERE product_id=%s", [product_id])
        for related_id in dict.fromkeys(ids):
            tx.execute(f"INSERT INTO {link} (product_id, {col}) VALUES (%s, %s)", [product_id, related_id])


def _product_filters(
    search: Optional[str],
    category_id: Optional[int],
    tag_id: Optional[int],
    min_price: Optional[float],
    max_price: Optional[float],
):
    where: List[str] = []
    params: List[Any] = []
    if search:
        where.append("(p.name ILIKE %s OR p.description ILIKE %s)")
        params.extend([f"%{search}%", f"%{search}%"])
    if category_id is not None:
        where.append("EXISTS (SELECT 1 FROM product_categories pc WHERE pc.product_id = p.id AND pc.category_id=%s)")
        params.append(category_id)
    if tag_id is not None:
        where.append("EXISTS (SELECT 1 FROM product_tags pt WHERE pt.product_id = p.id AND pt.tag_id=%s)")
        params.append(tag_id)
    if min_price is not None:
        where.append("p.price >= %s")
        params.append(min_price)
    if max_price is not None:
        where.append("p.price <= %s")
        params.append(max_price)
    return where, params


def _list_products(page: PageParams, where: List[str], params: List[Any], sort: ProductSort) -> Dict[str, Any]:
    where_sql = "WHERE " + " AND ".join(where)
    count = db.fetch_one(f"SELECT COUNT(*) AS total FROM products p {where_sql}", params)
    rows = db.fetch_all(
        f"{PRODUCT_SELECT} {where_sql} ORDER BY {_SORTS[sort]} LIMIT %s OFFSET %s",
        params + [page.limit, page.offset],
    )
    return paginated(rows, count["total"] if count else 0, page, "Products retrieved successfully")


def _load_product(product_id: int, executor=None) -> Optional[Dict[str, Any]]:
    executor = executor or db
    return executor.fetch_one(
        f"{PRODUCT_SELECT} WHERE p.id=%s AND p.status <> %s",
        [product_id, RecordStatus.deleted.value],
    )


# =========================
# Storefront
# =========================

@router.get("/products", summary="List products")
def list_products(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None, description="Search in name and description"),
    category_id: Optional[int] = Query(None),
    tag_id: Optional[int] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: ProductSort = Query(ProductSort.newest),
) -> Dict[str, Any]:
    """Active products with optional search and filters."""
    if min_price is not None and max_price is not None and min_price > max_price:
        raise bad_request("min_price cannot be greater than max_price")
    where, params = _product_filters(search, category_id, tag_id, min_price, max_price)
    return _list_products(page, ["p.status=%s"] + where, [RecordStatus.active.value] + params, sort)


@router.get("/products/hot", summary="Best selling products")
def hot_products(page: PageParams = Depends(), days: int = Query(30, ge=1, le=365)) -> Dict[str, Any]:
    """Active products ranked by units sold in non-canceled orders over the last ``days`` days."""
    sales_cte = """
        WITH sales AS (
            SELECT oi.product_id, SUM(oi.quantity) AS sold
            FROM order_items oi
            JOIN orders o ON o.id = oi.order_id
            WHERE o.created_at >= NOW() - make_interval(days => %s) AND o.status <> %s
            GROUP BY oi.product_id
        )
    """
    params = [days, OrderStatus.canceled.value]
    count = db.fetch_one(
        f"{sales_cte} SELECT COUNT(*) AS total FROM sales s JOIN products p ON p.id = s.product_id WHERE p.status=%s",
        params + [RecordStatus.active.value],
    )
    rows = db.fetch_all(
        f"""
        {sales_cte}
        SELECT hot.*, s.sold FROM ({PRODUCT_SELECT} WHERE p.status=%s) hot
        JOIN sales s ON s.product_id = hot.id
        ORDER BY s.sold DESC, hot.id DESC
        LIMIT %s OFFSET %s
        """,
        params + [RecordStatus.active.value, page.limit, page.offset],
    )
    return paginated(rows, count["total"] if count else 0, page, "Hot products retrieved successfully")


@router.get("/products/slug/{slug}", summary="Get product by slug")
def get_product_by_slug(slug: str) -> Dict[str, Any]:
    product = db.fetch_one(f"{PRODUCT_SELECT} WHERE p.slug=%s AND p.status=%s", [slug, RecordStatus.active.value])
    if not product:
        raise not_found("Product")
    return envelope(product, "Product retrieved successfully")


@router.get("/products/{product_id}", summary="Get product")
def get_product(product_id: int) -> Dict[str, Any]:
    product = _load_product(product_id)
    if not product:
        raise not_found("Product")
    return envelope(product, "Product retrieved successfully")


# =========================
# Admin
# =========================

@router.get("/admin/products", tags=["Admin"], summary="List products (admin)")
def admin_list_products(
    page: PageParams = Depends(),
    search: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
    sort: ProductSort = Query(ProductSort.newest),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    """Every non-deleted product, including inactive ones."""
    where, params = _product_filters(search, category_id, None, None, None)
    if status_filter is not None:
        where.append("p.status=%s")
        params.append(status_filter.value)
    return _list_products(page, ["p.status <> %s"] + where, [RecordStatus.deleted.value] + params, sort)


@router.post("/admin/products", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create product")
def admin_create_product(payload: ProductCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    """Create a product and its category/component/tag/image links in one transaction."""
    values = payload.model_dump(exclude=RELATION_FIELDS)
    with db.transaction() as tx:
        values["slug"] = _unique_slug(tx, payload.name)
        columns = ", ".join(values)
        placeholders = ", ".join(["%s"] * len(values))
        product = tx.execute_returning_one(
            f"INSERT INTO products ({columns}) VALUES ({placeholders}) RETURNING id",
            list(values.values()),
        )
        _sync_relations(tx, product["id"], payload.model_dump(include=RELATION_FIELDS))
        created = _load_product(product["id"], tx)

    logger.info("Product created", extra={"product_id": product["id"]})
    return envelope(created, "Product created successfully", status.HTTP_201_CREATED)


@router.put("/admin/products/{product_id}", tags=["Admin"], summary="Update product")
def admin_update_product(
    product_id: int, payload: ProductUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    """Update product columns; any relation list sent replaces the stored links."""
    values = changed_fields(payload, exclude=RELATION_FIELDS)
    relations = {k: v for k, v in payload.model_dump(exclude_unset=True, include=RELATION_FIELDS).items()}
    if not values and not relations:
        raise bad_request("Nothing to update")

    with db.transaction() as tx:
        existing = tx.fetch_one(
            "SELECT id, name FROM products WHERE id=%s AND status <> %s FOR UPDATE",
            [product_id, RecordStatus.deleted.value],
        )
        if not existing:
            raise not_found("Product")
        if "name" in values and values["name"] != existing["name"]:
            values["slug"] = _unique_slug(tx, values["name"], exclude_id=product_id)
        if values:
            set_sql, params = db.update_clause(values)
            tx.execute(f"UPDATE products SET {set_sql}, updated_at=NOW() WHERE id=%s", params + [product_id])
        else:
            tx.execute("UPDATE products SET updated_at=NOW() WHERE id=%s", [product_id])
        _sync_relations(tx, product_id, relations)
        updated = _load_product(product_id, tx)

    return envelope(updated, "Product updated successfully")


@router.put("/admin/products/{product_id}/status", tags=["Admin"], summary="Change product status")
def admin_update_product_status(
    product_id: int, payload: StatusUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    row = crud.set_status("products", product_id, payload.status, "Product")
    return envelope(row, "Product status updated successfully")


@router.delete("/admin/products/{product_id}", tags=["Admin"], summary="Delete product")
def admin_delete_product(product_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    """Soft delete; order history keeps pointing at the row."""
    crud.get_or_404("products", product_id, "Product")
    crud.set_status("products", product_id, RecordStatus.deleted, "Product")
    return envelope(None, "Product deleted successfully")
