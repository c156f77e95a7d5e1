import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from storefront.api import config, db, pricing
from storefront.api.auth_utils import ADMIN_ROLE, get_current_user, require_admin
from storefront.api.responses import PageParams, bad_request, envelope, forbidden, not_found, paginated
from storefront.api.routers.coupons import find_coupon
from storefront.api.schemas import (
    CANCELABLE_ORDER_STATUSES,
    CheckoutRequest,
    OrderStatus,
    OrderStatusUpdate,
    RecordStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])

ORDER_SELECT = """
SELECT o.*,
       u.username AS customer_username, u.full_name AS customer_name, u.email AS customer_email,
       pm.name AS payment_method_name, pm.icon_url AS payment_method_icon,
       cp.code AS coupon_code,
       da.address AS delivery_address, da.phone_number AS delivery_phone,
       pv.name AS province_name, d.name AS district_name, w.name AS ward_name
FROM orders o
LEFT JOIN users u ON u.id = o.user_id
LEFT JOIN payment_methods pm ON pm.id = o.payment_method_id
LEFT JOIN coupons cp ON cp.id = o.coupon_id
LEFT JOIN delivery_addresses da ON da.id = o.delivery_address_id
LEFT JOIN provinces pv ON pv.code = da.province_code
LEFT JOIN districts d ON d.code = da.district_code
LEFT JOIN wards w ON w.code = da.ward_code
"""

ORDER_ITEMS_SQL = """
SELECT oi.*, p.name AS product_name, p.slug, i.url AS thumbnail_url
FROM order_items oi
LEFT JOIN products p ON p.id = oi.product_id
LEFT JOIN images i ON i.id = p.thumbnail_id
WHERE oi.order_id = ANY(%s)
ORDER BY oi.id ASC
"""


def _attach_items(orders: List[Dict[str, Any]], executor=None) -> List[Dict[str, Any]]:
    executor = executor or db
    if not orders:
        return orders
    items = executor.fetch_all(ORDER_ITEMS_SQL, [[o["id"] for o in orders]])
    by_order: Dict[Any, List[Dict[str, Any]]] = {o["id"]: [] for o in orders}
    for item in items:
        by_order.setdefault(item["order_id"], []).append(item)
    for o in orders:
        o["items"] = by_order[o["id"]]
        o["total_items"] = sum(int(i["quantity"]) for i in o["items"])
    return orders


def _load_order(order_id: int, executor=None) -> Optional[Dict[str, Any]]:
    executor = executor or db
    order = executor.fetch_one(f"{ORDER_SELECT} WHERE o.id=%s", [order_id])
    if order:
        _attach_items([order], executor)
    return order


def _requested_lines(tx, payload: CheckoutRequest, cart: Optional[Dict[str, Any]]) -> Dict[int, int]:
    """product_id -> quantity, from the payload or else from the active cart."""
    requested: Dict[int, int] = {}
    if payload.items:
        for item in payload.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        return requested

    if cart:
        for line in tx.fetch_all(
            "SELECT product_id, quantity FROM cart_items WHERE cart_id=%s AND status=%s ORDER BY id",
            [cart["id"], RecordStatus.active.value],
        ):
            requested[line["product_id"]] = requested.get(line["product_id"], 0) + int(line["quantity"])
    if not requested:
        raise bad_request("Cart is empty")
    return requested


def _priced_lines(tx, requested: Dict[int, int]) -> List[Dict[str, Any]]:
    products = tx.fetch_all(
        "SELECT id, name, price, stock_quantity, status FROM products WHERE id = ANY(%s) FOR UPDATE",
        [list(requested)],
    )
    by_id = {p["id"]: p for p in products}
    lines = []
    for product_id, quantity in requested.items():
        product = by_id.get(product_id)
        if not product or product["status"] != RecordStatus.active:
            raise bad_request(f"Product {product_id} is not available")
        if int(product["stock_quantity"]) < quantity:
            raise bad_request(f"Only {product['stock_quantity']} of \"{product['name']}\" left in stock")
        lines.append({"product_id": product_id, "name": product["name"], "price": product["price"], "quantity": quantity})
    return lines


# =========================
# Customer
# =========================

@router.post("/orders", status_code=status.HTTP_201_CREATED, summary="Checkout")
def place_order(payload: CheckoutRequest, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """
    Place an order from the given lines (or the whole active cart).

    Prices come from the product rows. Stock is decremented and the ordered
    lines leave the cart in the same transaction as the order insert.
    """
    with db.transaction() as tx:
        address = tx.fetch_one(
            "SELECT id FROM delivery_addresses WHERE id=%s AND user_id=%s AND status=%s",
            [payload.delivery_address_id, user["id"], RecordStatus.active.value],
        )
        if not address:
            raise bad_request("Delivery address not found")
        payment_method = tx.fetch_one(
            "SELECT id FROM payment_methods WHERE id=%s AND status=%s AND is_active",
            [payload.payment_method_id, RecordStatus.active.value],
        )
        if not payment_method:
            raise bad_request("Payment method not available")

        cart = tx.fetch_one(
            "SELECT id FROM carts WHERE user_id=%s AND status=%s FOR UPDATE", [user["id"], RecordStatus.active.value]
        )
        lines = _priced_lines(tx, _requested_lines(tx, payload, cart))

        coupon, used = None, 0
        if payload.coupon_code:
            coupon, used = find_coupon(payload.coupon_code, tx, lock=True)
            if not coupon:
                raise bad_request("Coupon not found")
        try:
            totals = pricing.compute_totals(
                pricing.line_subtotal(lines), config.shipping_fee(), coupon, usage_count=used
            )
        except pricing.CouponError as exc:
            raise bad_request(str(exc))

        order = tx.execute_returning_one(
            """
            INSERT INTO orders (user_id, status, delivery_address_id, payment_method_id, coupon_id, note,
                                subtotal_amount, discount_amount, shipping_fee, total_amount, order_date)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
            RETURNING id
            """,
            [
                user["id"],
                OrderStatus.pending.value,
                payload.delivery_address_id,
                payload.payment_method_id,
                coupon["id"] if coupon else None,
                payload.note,
                totals.subtotal,
                totals.discount,
                totals.shipping_fee,
                totals.total,
            ],
        )

        for line in lines:
            tx.execute(
                "INSERT INTO order_items (order_id, product_id, quantity, price, status) VALUES (%s, %s, %s, %s, %s)",
                [order["id"], line["product_id"], line["quantity"], line["price"], RecordStatus.active.value],
            )
            decremented = tx.execute(
                "UPDATE products SET stock_quantity = stock_quantity - %s, updated_at=NOW() "
                "WHERE id=%s AND stock_quantity >= %s",
                [line["quantity"], line["product_id"], line["quantity"]],
            )
            if decremented != 1:
                raise bad_request(f"\"{line['name']}\" is out of stock")

        if cart:
            tx.execute(
                "UPDATE cart_items SET status=%s, updated_at=NOW() WHERE cart_id=%s AND product_id = ANY(%s) AND status=%s",
                [RecordStatus.inactive.value, cart["id"], [line["product_id"] for line in lines], RecordStatus.active.value],
            )
        created = _load_order(order["id"], tx)

    logger.info("Order placed", extra={"order_id": order["id"], "user_id": user["id"]})
    return envelope(created, "Order created successfully", status.HTTP_201_CREATED)


@router.get("/orders", summary="Order history")
def list_my_orders(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Caller's orders, most recent first."""
    orders = db.fetch_all(f"{ORDER_SELECT} WHERE o.user_id=%s ORDER BY o.created_at DESC", [user["id"]])
    return envelope(_attach_items(orders), "Orders retrieved successfully")


@router.get("/orders/{order_id}", summary="Get order")
def get_order(order_id: int, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """An order of the caller's, or any order for admins."""
    order = _load_order(order_id)
    if not order:
        raise not_found("Order")
    if order["user_id"] != user["id"] and user.get("role_name") != ADMIN_ROLE:
        raise forbidden()
    return envelope(order, "Order retrieved successfully")


@router.put("/orders/{order_id}/cancel", summary="Cancel order")
def cancel_order(order_id: int, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Cancel a pending or processing order and put its items back in stock."""
    with db.transaction() as tx:
        order = tx.fetch_one(
            "SELECT id, status FROM orders WHERE id=%s AND user_id=%s FOR UPDATE", [order_id, user["id"]]
        )
        if not order:
            raise not_found("Order")
        if order["status"] not in CANCELABLE_ORDER_STATUSES:
            raise bad_request("Cannot cancel order in current status")

        tx.execute(
            "UPDATE orders SET status=%s, updated_at=NOW() WHERE id=%s", [OrderStatus.canceled.value, order_id]
        )
        for item in tx.fetch_all("SELECT product_id, quantity FROM order_items WHERE order_id=%s", [order_id]):
            if item["product_id"] is None:
                continue
            tx.execute(
                "UPDATE products SET stock_quantity = stock_quantity + %s, updated_at=NOW() WHERE id=%s",
                [item["quantity"], item["product_id"]],
            )
        canceled = _load_order(order_id, tx)

    logger.info("Order canceled", extra={"order_id": order_id, "user_id": user["id"]})
    return envelope(canceled, "Order cancelled successfully")


# =========================
# Admin
# =========================

@router.get("/admin/orders", tags=["Admin"], summary="List all orders")
def admin_list_orders(
    page: PageParams = Depends(),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Username, email or delivery phone"),
    _: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    where: List[str] = []
    params: List[Any] = []
    if status_filter is not None:
        where.append("o.status=%s")
        params.append(status_filter.value)
    if search:
        where.append("(u.username ILIKE %s OR u.email ILIKE %s OR da.phone_number ILIKE %s)")
        params.extend([f"%{search}%"] * 3)
    where_sql = ("WHERE " + " AND ".join(where)) if where else ""

    count = db.fetch_one(
        f"""
        SELECT COUNT(*) AS total FROM orders o
        LEFT JOIN users u ON u.id = o.user_id
        LEFT JOIN delivery_addresses da ON da.id = o.delivery_address_id
        {where_sql}
        """,
        params,
    )
    orders = db.fetch_all(
        f"{ORDER_SELECT} {where_sql} ORDER BY o.created_at DESC LIMIT %s OFFSET %s",
        params + [page.limit, page.offset],
    )
    return paginated(_attach_items(orders), count["total"] if count else 0, page, "Orders retrieved successfully")


@router.put("/admin/orders/{order_id}/status", tags=["Admin"], summary="Change order status")
def admin_change_order_status(
    order_id: int, payload: OrderStatusUpdate, admin: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    """Set any order status; transitions are not restricted."""
    row = db.execute_returning_one(
        "UPDATE orders SET status=%s, updated_at=NOW() WHERE id=%s RETURNING id",
        [payload.status.value, order_id],
    )
    if not row:
        raise not_found("Order")
    logger.info(
        "Order status set to %s by admin %s", payload.status.name, admin["id"], extra={"order_id": order_id}
    )
    return envelope(_load_order(order_id), "Order status updated successfully")
