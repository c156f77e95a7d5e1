import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from storefront.api import db, pricing
from storefront.api.auth_utils import get_current_user
from storefront.api.responses import bad_request, envelope, not_found
from storefront.api.schemas import CartItemAdd, CartItemQuantity, RecordStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/carts", tags=["Cart"])

CART_LINES_SQL = """
SELECT ci.id, ci.cart_id, ci.product_id, ci.quantity, ci.created_at, ci.updated_at,
       p.name AS product_name, p.slug, p.price, p.stock_quantity, p.status AS product_status,
       i.url AS thumbnail_url
FROM carts c
JOIN cart_items ci ON ci.cart_id = c.id
JOIN products p ON p.id = ci.product_id
LEFT JOIN images i ON i.id = p.thumbnail_id
WHERE c.user_id=%s AND c.status=%s AND ci.status=%s
ORDER BY ci.created_at DESC
"""


def get_or_create_cart(tx, user_id: int) -> Dict[str, Any]:
    """The user's active cart, created if missing. Locks the cart row for the rest of ``tx``."""
    cart = tx.fetch_one(
        "SELECT * FROM carts WHERE user_id=%s AND status=%s FOR UPDATE", [user_id, RecordStatus.active.value]
    )
    if cart:
        return cart
    return tx.execute_returning_one(
        "INSERT INTO carts (user_id, status) VALUES (%s, %s) RETURNING *", [user_id, RecordStatus.active.value]
    )


# PUBLIC_INTERFACE
def active_cart_lines(user_id: int) -> List[Dict[str, Any]]:
    """
    Active cart lines for ``user_id`` whose product is still on sale.

    Lines pointing at products that were deactivated or deleted are
    soft-removed from the cart as a side effect.
    """
    lines = db.fetch_all(CART_LINES_SQL, [user_id, RecordStatus.active.value, RecordStatus.active.value])
    valid = [line for line in lines if line["product_status"] == RecordStatus.active]
    stale = [line["id"] for line in lines if line["product_status"] != RecordStatus.active]
    if stale:
        db.execute(
            "UPDATE cart_items SET status=%s, updated_at=NOW() WHERE id = ANY(%s)",
            [RecordStatus.inactive.value, stale],
        )
        logger.info("Removed %d unavailable cart lines", len(stale), extra={"user_id": user_id})
    return valid


def _cart_view(user_id: int) -> Dict[str, Any]:
    lines = active_cart_lines(user_id)
    return {
        "items": lines,
        "total_items": sum(int(line["quantity"]) for line in lines),
        "total_amount": pricing.line_subtotal(lines),
    }


def _sellable_product(tx, product_id: int) -> Dict[str, Any]:
    product = tx.fetch_one(
        "SELECT id, name, price, stock_quantity FROM products WHERE id=%s AND status=%s",
        [product_id, RecordStatus.active.value],
    )
    if not product:
        raise not_found("Product")
    return product


def _check_stock(product: Dict[str, Any], quantity: int) -> None:
    if int(product["stock_quantity"]) < quantity:
        raise bad_request(f"Only {product['stock_quantity']} of \"{product['name']}\" left in stock")


@router.get("", summary="Get current user's cart")
def get_cart(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return envelope(_cart_view(user["id"]), "Cart retrieved successfully")


@router.post("/items", summary="Add product to cart")
def add_cart_item(payload: CartItemAdd, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Add ``quantity`` units; an existing line for the product accumulates."""
    with db.transaction() as tx:
        product = _sellable_product(tx, payload.product_id)
        cart = get_or_create_cart(tx, user["id"])
        existing = tx.fetch_one(
            "SELECT id, quantity FROM cart_items WHERE cart_id=%s AND product_id=%s AND status=%s",
            [cart["id"], payload.product_id, RecordStatus.active.value],
        )
        new_quantity = payload.quantity + (int(existing["quantity"]) if existing else 0)
        _check_stock(product, new_quantity)
        if existing:
            tx.execute(
                "UPDATE cart_items SET quantity=%s, updated_at=NOW() WHERE id=%s",
                [new_quantity, existing["id"]],
            )
        else:
            tx.execute(
                "INSERT INTO cart_items (cart_id, product_id, quantity, status) VALUES (%s, %s, %s, %s)",
                [cart["id"], payload.product_id, new_quantity, RecordStatus.active.value],
            )
    return envelope(_cart_view(user["id"]), "Product added to cart successfully")


def _owned_line(tx, item_id: int, user_id: int) -> Dict[str, Any]:
    line = tx.fetch_one(
        """
        SELECT ci.id, ci.product_id, ci.quantity
        FROM cart_items ci
        JOIN carts c ON c.id = ci.cart_id
        WHERE ci.id=%s AND c.user_id=%s AND c.status=%s AND ci.status=%s
        """,
        [item_id, user_id, RecordStatus.active.value, RecordStatus.active.value],
    )
    if not line:
        raise not_found("Cart item")
    return line


@router.put("/items/{item_id}", summary="Set cart line quantity")
def update_cart_item(
    item_id: int, payload: CartItemQuantity, user: Dict[str, Any] = Depends(get_current_user)
) -> Dict[str, Any]:
    with db.transaction() as tx:
        line = _owned_line(tx, item_id, user["id"])
        product = _sellable_product(tx, line["product_id"])
        _check_stock(product, payload.quantity)
        tx.execute("UPDATE cart_items SET quantity=%s, updated_at=NOW() WHERE id=%s", [payload.quantity, item_id])
    return envelope(_cart_view(user["id"]), "Cart updated successfully")


@router.delete("/items/{item_id}", summary="Remove cart line")
def remove_cart_item(item_id: int, user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    with db.transaction() as tx:
        _owned_line(tx, item_id, user["id"])
        tx.execute(
            "UPDATE cart_items SET status=%s, updated_at=NOW() WHERE id=%s", [RecordStatus.inactive.value, item_id]
        )
    return envelope(_cart_view(user["id"]), "Product removed from cart successfully")
