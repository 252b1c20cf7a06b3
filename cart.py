from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from auth import get_current_user
from catalog import get_product_or_404
from database import get_store
from pricing import cart_totals
from schemas import CartItemCreate, CartItemUpdate, CartOut, QuoteRequest, WishlistItemCreate, WishlistOut

router = APIRouter(prefix="/api", tags=["cart"])


def get_cart(store, user_id: str, create: bool = False) -> Optional[dict]:
    cart = store.find_one("cart", {"user_id": user_id})
    if cart is None and create:
        cart_id = store.create_document("cart", {"user_id": user_id, "updated_at": datetime.now(timezone.utc)})
        cart = store.get_document("cart", cart_id)
    return cart


def cart_lines(store, user_id: str) -> list:
    """Cart items joined with their current product, skipping products that no longer exist."""
    cart = get_cart(store, user_id)
    if cart is None:
        return []
    lines = []
    for item in store.get_documents("cartitem", {"cart_id": cart["id"]}):
        product = store.get_document("product", item["product_id"])
        if product:
            lines.append({**item, "product": product})
    return lines


def price_lines(lines: list) -> dict:
    totals = cart_totals((line["product"]["price"], line["quantity"]) for line in lines)
    return {"items": lines, "total_items": sum(line["quantity"] for line in lines), **totals}


def clear_cart(store, user_id: str) -> None:
    cart = get_cart(store, user_id)
    if cart is not None:
        store.delete_documents("cartitem", {"cart_id": cart["id"]})
        store.update_document("cart", cart["id"], {"updated_at": datetime.now(timezone.utc)})


def _owned_item(store, user_id: str, item_id: str) -> dict:
    cart = get_cart(store, user_id)
    item = store.get_document("cartitem", item_id)
    if cart is None or item is None or item["cart_id"] != cart["id"]:
        raise HTTPException(404, "Cart item not found")
    return item


# Cart
@router.get("/cart", response_model=CartOut)
def view_cart(current: dict = Depends(get_current_user), store=Depends(get_store)):
    return price_lines(cart_lines(store, current["id"]))


@router.post("/cart/items", response_model=CartOut, status_code=201)
def add_to_cart(payload: CartItemCreate, current: dict = Depends(get_current_user), store=Depends(get_store)):
    get_product_or_404(store, payload.product_id)
    cart = get_cart(store, current["id"], create=True)
    existing = store.find_one("cartitem", {"cart_id": cart["id"], "product_id": payload.product_id})
    if existing:
        store.increment("cartitem", existing["id"], "quantity", payload.quantity)
    else:
        store.create_document("cartitem", {
            "cart_id": cart["id"],
            "product_id": payload.product_id,
            "quantity": payload.quantity,
        })
    store.update_document("cart", cart["id"], {"updated_at": datetime.now(timezone.utc)})
    return price_lines(cart_lines(store, current["id"]))


@router.put("/cart/items/{item_id}", response_model=CartOut)
def update_cart_item(
    item_id: str,
    payload: CartItemUpdate,
    current: dict = Depends(get_current_user),
    store=Depends(get_store),
):
    _owned_item(store, current["id"], item_id)
    store.update_document("cartitem", item_id, {"quantity": payload.quantity})
    return price_lines(cart_lines(store, current["id"]))


@router.delete("/cart/items/{item_id}", response_model=CartOut)
def remove_cart_item(item_id: str, current: dict = Depends(get_current_user), store=Depends(get_store)):
    _owned_item(store, current["id"], item_id)
    store.delete_document("cartitem", item_id)
    return price_lines(cart_lines(store, current["id"]))


@router.delete("/cart", status_code=204)
def empty_cart(current: dict = Depends(get_current_user), store=Depends(get_store)):
    clear_cart(store, current["id"])
    return Response(status_code=204)


@router.post("/cart/quote", response_model=CartOut)
def quote_cart(payload: QuoteRequest, store=Depends(get_store)):
    """Price a browser-held cart against current catalog prices."""
    lines = []
    for item in payload.items:
        product = store.get_document("product", item.product_id)
        if product:
            lines.append({
                "id": item.product_id,
                "product_id": item.product_id,
                "quantity": item.quantity,
                "product": product,
            })
    return price_lines(lines)


# Wishlist
def _wishlist_view(store, user_id: str) -> dict:
    wishlist = store.find_one("wishlist", {"user_id": user_id})
    if wishlist is None:
        return {"items": []}
    items = []
    for item in store.get_documents("wishlistitem", {"wishlist_id": wishlist["id"]}):
        product = store.get_document("product", item["product_id"])
        if product:
            items.append({**item, "product": product})
    return {"items": items}


@router.get("/wishlist", response_model=WishlistOut)
def view_wishlist(current: dict = Depends(get_current_user), store=Depends(get_store)):
    return _wishlist_view(store, current["id"])


@router.post("/wishlist/items", response_model=WishlistOut, status_code=201)
def add_to_wishlist(payload: WishlistItemCreate, current: dict = Depends(get_current_user), store=Depends(get_store)):
    get_product_or_404(store, payload.product_id)
    wishlist = store.find_one("wishlist", {"user_id": current["id"]})
    if wishlist is None:
        wishlist = store.get_document("wishlist", store.create_document("wishlist", {"user_id": current["id"]}))
    if not store.find_one("wishlistitem", {"wishlist_id": wishlist["id"], "product_id": payload.product_id}):
        store.create_document("wishlistitem", {"wishlist_id": wishlist["id"], "product_id": payload.product_id})
    return _wishlist_view(store, current["id"])


@router.delete("/wishlist/items/{item_id}", response_model=WishlistOut)
def remove_from_wishlist(item_id: str, current: dict = Depends(get_current_user), store=Depends(get_store)):
    wishlist = store.find_one("wishlist", {"user_id": current["id"]})
    item = store.get_document("wishlistitem", item_id)
    if wishlist is None or item is None or item["wishlist_id"] != wishlist["id"]:
        raise HTTPException(404, "Wishlist item not found")
    store.delete_document("wishlistitem", item_id)
    return _wishlist_view(store, current["id"])
