import logging
import math
import secrets
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

import config
from auth import get_current_admin, get_current_user
from cart import cart_lines, clear_cart
from database import get_store
from pricing import cart_totals, check_transition
from schemas import OrderCreate, OrderOut, OrderPage, OrderStatus, OrderStatusUpdate, PaymentRequest, PaymentResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["orders"])


def authorize_payment(amount: float, payment_method: str) -> str:
    """Simulated gateway: always approves after a fixed delay."""
    time.sleep(config.PAYMENT_DELAY_SECONDS)
    payment_id = f"sim_{secrets.token_hex(8)}"
    logger.info("Simulated %s payment of %.2f %s approved (%s)", payment_method, amount, config.CURRENCY, payment_id)
    return payment_id


def order_view(store, order: dict) -> dict:
    return {**order, "items": store.get_documents("orderitem", {"order_id": order["id"]})}


def get_order_or_404(store, order_id: str) -> dict:
    order = store.get_document("order", order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


# Payment
@router.post("/payment/process", response_model=PaymentResult)
def process_payment(payload: PaymentRequest, current: dict = Depends(get_current_user)):
    payment_id = authorize_payment(payload.amount, payload.payment_method)
    return {
        "success": True,
        "payment_id": payment_id,
        "message": "Payment processed successfully",
        "transaction_details": {
            "amount": payload.amount,
            "currency": config.CURRENCY,
            "payment_method": payload.payment_method,
            "timestamp": datetime.now(timezone.utc),
            "status": "completed",
        },
    }


# Orders
@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(payload: OrderCreate, current: dict = Depends(get_current_user), store=Depends(get_store)):
    if payload.items is not None:
        requested = [(i.product_id, i.quantity) for i in payload.items]
    else:
        requested = [(line["product_id"], line["quantity"]) for line in cart_lines(store, current["id"])]

    quantities = {}
    for product_id, quantity in requested:
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    if not quantities:
        raise HTTPException(400, "Order must have at least one item")

    lines = []
    for product_id, quantity in quantities.items():
        product = store.get_document("product", product_id)
        if not product:
            raise HTTPException(400, f"Product with ID {product_id} not found")
        if product.get("stock", 0) < quantity:
            raise HTTPException(400, f"Insufficient stock for {product['name']}")
        lines.append((product, quantity))

    # Client-side totals are never trusted
    totals = cart_totals((float(p["price"]), q) for p, q in lines)
    if payload.total is not None and abs(payload.total - totals["total"]) >= 0.01:
        logger.warning("Client total %.2f differs from computed %.2f for user %s",
                       payload.total, totals["total"], current["id"])

    payment_id = None
    payment_status = "pending"
    if payload.payment_method != "cash_on_delivery":
        payment_id = authorize_payment(totals["total"], payload.payment_method)
        payment_status = "paid"

    now = datetime.now(timezone.utc)
    order_id = store.create_document("order", {
        "user_id": current["id"],
        "status": "pending",
        "payment_method": payload.payment_method,
        "payment_status": payment_status,
        "payment_id": payment_id,
        "shipping_address": payload.shipping_address.model_dump(),
        **totals,
        "created_at": now,
        "updated_at": now,
    })
    for product, quantity in lines:
        store.create_document("orderitem", {
            "order_id": order_id,
            "product_id": product["id"],
            "name": product["name"],
            "category_id": product.get("category_id"),
            "quantity": quantity,
            "price": float(product["price"]),
        })
        store.increment("product", product["id"], "stock", -quantity)

    clear_cart(store, current["id"])
    logger.info("Order %s placed by %s: %d lines, total %.2f", order_id, current["id"], len(lines), totals["total"])
    return order_view(store, store.get_document("order", order_id))


@router.get("/orders", response_model=List[OrderOut])
def list_my_orders(current: dict = Depends(get_current_user), store=Depends(get_store)):
    orders = store.get_documents("order", {"user_id": current["id"]}, sort=[("created_at", -1)])
    return [order_view(store, o) for o in orders]


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, current: dict = Depends(get_current_user), store=Depends(get_store)):
    order = get_order_or_404(store, order_id)
    if current.get("role") != "admin" and order["user_id"] != current["id"]:
        raise HTTPException(403, "Access denied")
    return order_view(store, order)


@router.put("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    current: dict = Depends(get_current_admin),
    store=Depends(get_store),
):
    order = get_order_or_404(store, order_id)
    try:
        check_transition(order["status"], payload.status)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if payload.status == order["status"]:
        return order_view(store, order)

    if payload.status == "cancelled":
        for item in store.get_documents("orderitem", {"order_id": order_id}):
            store.increment("product", item["product_id"], "stock", item["quantity"])
    order = store.update_document("order", order_id, {
        "status": payload.status,
        "updated_at": datetime.now(timezone.utc),
    })
    logger.info("Order %s moved to %s by %s", order_id, payload.status, current["username"])
    return order_view(store, order)


@router.get("/admin/orders", response_model=OrderPage)
def list_all_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current: dict = Depends(get_current_admin),
    store=Depends(get_store),
):
    filter_q = {"status": status} if status else None
    orders = store.get_documents("order", filter_q, sort=[("created_at", -1)])
    total = len(orders)
    start = (page - 1) * limit
    return {
        "orders": [order_view(store, o) for o in orders[start:start + limit]],
        "pagination": {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit)},
    }
