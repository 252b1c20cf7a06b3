"""Checkout arithmetic and the order status lifecycle."""
from typing import Dict, Iterable, Tuple

import config

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

# Forward-only; cancellation allowed until delivery
ALLOWED_TRANSITIONS = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}


def shipping_fee(subtotal: float) -> float:
    if subtotal <= 0:
        return 0.0
    threshold = config.FREE_SHIPPING_THRESHOLD
    if threshold > 0 and subtotal >= threshold:
        return 0.0
    return round(config.SHIPPING_FEE, 2)


def cart_totals(lines: Iterable[Tuple[float, int]]) -> Dict[str, float]:
    """Price (unit price, quantity) pairs: subtotal, shipping, tax and total."""
    subtotal = round(sum(float(price) * int(qty) for price, qty in lines), 2)
    shipping = shipping_fee(subtotal)
    tax = round(subtotal * config.TAX_RATE, 2)
    return {
        "subtotal": subtotal,
        "shipping": shipping,
        "tax": tax,
        "total": round(subtotal + shipping + tax, 2),
    }


def check_transition(current: str, new: str) -> None:
    if new not in ORDER_STATUSES:
        raise ValueError(f"Unknown order status '{new}'")
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Cannot change order status from {current} to {new}")
