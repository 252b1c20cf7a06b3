"""
Admin dashboard aggregates.

Everything here is computed from persisted orders and products on each
request; nothing is cached or sampled.
"""
from collections import OrderedDict
from typing import List

from fastapi import APIRouter, Depends

from auth import get_current_admin
from database import get_store
from orders import order_view
from pricing import ORDER_STATUSES
from schemas import CategoryInventory, CategorySales, DashboardStats, RevenuePoint

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])

LOW_STOCK_THRESHOLD = 10
UNCATEGORIZED = "Uncategorized"


def _counted(order: dict) -> bool:
    return order.get("status") != "cancelled"


def _category_names(store) -> dict:
    return {c["id"]: c["name"] for c in store.get_documents("category")}


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(store=Depends(get_store)):
    orders = store.get_documents("order", sort=[("created_at", -1)])
    by_status = {status: 0 for status in ORDER_STATUSES}
    for order in orders:
        by_status[order["status"]] = by_status.get(order["status"], 0) + 1

    products = store.get_documents("product")
    low_stock = sorted(
        (p for p in products if p.get("stock", 0) < LOW_STOCK_THRESHOLD),
        key=lambda p: p.get("stock", 0),
    )
    return {
        "total_orders": len(orders),
        "total_revenue": round(sum(o["total"] for o in orders if _counted(o)), 2),
        "total_products": len(products),
        "total_users": store.count_documents("user"),
        "total_customers": store.count_documents("user", {"role": "user"}),
        "orders_by_status": by_status,
        "low_stock_products": low_stock,
        "recent_orders": [order_view(store, o) for o in orders[:5]],
    }


@router.get("/reports/revenue", response_model=List[RevenuePoint])
def revenue_by_month(store=Depends(get_store)):
    months = OrderedDict()
    for order in store.get_documents("order", sort=[("created_at", 1)]):
        if not _counted(order):
            continue
        month = order["created_at"].strftime("%Y-%m")
        point = months.setdefault(month, {"month": month, "revenue": 0.0, "orders": 0})
        point["revenue"] += order["total"]
        point["orders"] += 1
    for point in months.values():
        point["revenue"] = round(point["revenue"], 2)
    return list(months.values())


@router.get("/reports/categories", response_model=List[CategorySales])
def sales_by_category(store=Depends(get_store)):
    counted = {o["id"] for o in store.get_documents("order") if _counted(o)}
    names = _category_names(store)
    groups = {}
    for item in store.get_documents("orderitem"):
        if item["order_id"] not in counted:
            continue
        category_id = item.get("category_id")
        group = groups.setdefault(category_id, {
            "category_id": category_id,
            "category": names.get(category_id, UNCATEGORIZED),
            "units_sold": 0,
            "revenue": 0.0,
        })
        group["units_sold"] += item["quantity"]
        group["revenue"] += item["price"] * item["quantity"]
    for group in groups.values():
        group["revenue"] = round(group["revenue"], 2)
    return sorted(groups.values(), key=lambda g: g["revenue"], reverse=True)


@router.get("/reports/products", response_model=List[CategoryInventory])
def inventory_by_category(store=Depends(get_store)):
    names = _category_names(store)
    groups = {}
    for product in store.get_documents("product"):
        category_id = product.get("category_id")
        group = groups.setdefault(category_id, {
            "category_id": category_id,
            "category": names.get(category_id, UNCATEGORIZED),
            "products": 0,
            "stock": 0,
        })
        group["products"] += 1
        group["stock"] += product.get("stock", 0)
    return sorted(groups.values(), key=lambda g: g["category"])
