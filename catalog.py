import logging
import math
import re
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic.alias_generators import to_snake

from auth import get_current_admin, get_current_user
from database import get_store
from schemas import (
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    ProductCreate,
    ProductOut,
    ProductPage,
    ProductUpdate,
    ReviewCreate,
    ReviewOut,
    SearchSuggestion,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["catalog"])

SORTABLE_FIELDS = {
    "name", "slug", "brand", "description", "price", "compare_at_price",
    "stock", "rating", "review_count", "created_at",
}
# Fields an update may explicitly clear
NULLABLE_PRODUCT_FIELDS = {"compare_at_price", "category_id", "image_url", "brand"}
# Paths routed ahead of /products/{slug}
RESERVED_PRODUCT_SLUGS = {"featured", "new-arrivals"}


def slugify(value: str) -> str:
    value = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return value.strip("-")


def product_matches(
    product: dict,
    category_id: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    is_new: Optional[bool] = None,
    on_sale: Optional[bool] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> bool:
    if category_id is not None and product.get("category_id") != category_id:
        return False
    if search:
        term = search.lower()
        haystack = (product.get("name") or "", product.get("description") or "", product.get("brand") or "")
        if not any(term in text.lower() for text in haystack):
            return False
    if featured is not None and bool(product.get("is_featured")) != featured:
        return False
    if is_new is not None and bool(product.get("is_new")) != is_new:
        return False
    if on_sale is not None and bool(product.get("is_on_sale")) != on_sale:
        return False
    price = float(product.get("price", 0))
    if min_price is not None and price < min_price:
        return False
    if max_price is not None and price > max_price:
        return False
    return True


def sort_products(products: List[dict], sort_by: Optional[str], sort_order: str = "desc") -> List[dict]:
    """Order by one field; records without a value go last, unknown fields leave order untouched."""
    field = to_snake(sort_by or "")
    if field not in SORTABLE_FIELDS:
        return products
    present = [p for p in products if p.get(field) is not None]
    missing = [p for p in products if p.get(field) is None]

    def key(product):
        value = product[field]
        return value.lower() if isinstance(value, str) else value

    present.sort(key=key, reverse=sort_order == "desc")
    return present + missing


def get_product_or_404(store, product_id: str) -> dict:
    product = store.get_document("product", product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


def _ensure_category(store, category_id: Optional[str]):
    if category_id is not None and not store.get_document("category", category_id):
        raise HTTPException(400, "Category not found")


def _unique_slug(store, collection: str, slug: str, exclude_id: Optional[str] = None) -> str:
    slug = slugify(slug)
    if not slug:
        raise HTTPException(400, "Slug must contain letters or digits")
    if collection == "product" and slug in RESERVED_PRODUCT_SLUGS:
        raise HTTPException(400, "Slug is reserved")
    existing = store.find_one(collection, {"slug": slug})
    if existing and existing["id"] != exclude_id:
        raise HTTPException(400, "Slug already exists")
    return slug


# Products
@router.get("/products", response_model=ProductPage)
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    is_new: Optional[bool] = Query(None, alias="new"),
    on_sale: Optional[bool] = Query(None, alias="onSale"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    store=Depends(get_store),
):
    category_id = None
    if category:
        cat = store.find_one("category", {"slug": category})
        if not cat:
            return {"products": [], "pagination": {"total": 0, "page": page, "limit": limit, "total_pages": 0}}
        category_id = cat["id"]

    products = [
        p for p in store.get_documents("product")
        if product_matches(p, category_id, search, featured, is_new, on_sale, min_price, max_price)
    ]
    products = sort_products(products, sort_by, sort_order)
    total = len(products)
    start = (page - 1) * limit
    return {
        "products": products[start:start + limit],
        "pagination": {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit)},
    }


@router.get("/products/featured", response_model=List[ProductOut])
def featured_products(store=Depends(get_store)):
    return store.get_documents("product", {"is_featured": True}, limit=8)


@router.get("/products/new-arrivals", response_model=List[ProductOut])
def new_arrivals(store=Depends(get_store)):
    return store.get_documents("product", {"is_new": True}, sort=[("created_at", -1)], limit=8)


@router.get("/products/{slug}", response_model=ProductOut)
def get_product(slug: str, store=Depends(get_store)):
    prod = store.find_one("product", {"slug": slug})
    if not prod:
        raise HTTPException(404, "Product not found")
    return prod


@router.get("/products/{slug}/related", response_model=List[ProductOut])
def related_products(slug: str, store=Depends(get_store)):
    prod = store.find_one("product", {"slug": slug})
    if not prod:
        raise HTTPException(404, "Product not found")
    if prod.get("category_id") is None:
        return []
    related = store.get_documents("product", {"category_id": prod["category_id"]})
    return [r for r in related if r["id"] != prod["id"]][:8]


@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(payload: ProductCreate, current: dict = Depends(get_current_admin), store=Depends(get_store)):
    data = payload.model_dump()
    data["slug"] = _unique_slug(store, "product", payload.slug or payload.name)
    _ensure_category(store, data["category_id"])
    data.update({"rating": 0.0, "review_count": 0, "created_at": datetime.now(timezone.utc)})
    product_id = store.create_document("product", data)
    logger.info("Product %s created by %s", data["slug"], current["username"])
    return store.get_document("product", product_id)


@router.put("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    current: dict = Depends(get_current_admin),
    store=Depends(get_store),
):
    get_product_or_404(store, product_id)
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in NULLABLE_PRODUCT_FIELDS
    }
    if "slug" in changes:
        changes["slug"] = _unique_slug(store, "product", changes["slug"], exclude_id=product_id)
    if "category_id" in changes:
        _ensure_category(store, changes["category_id"])
    logger.info("Product %s updated by %s: %s", product_id, current["username"], sorted(changes))
    return store.update_document("product", product_id, changes)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: str, current: dict = Depends(get_current_admin), store=Depends(get_store)):
    if not store.delete_document("product", product_id):
        raise HTTPException(404, "Product not found")
    # Orders keep their own snapshot; carts and wishlists drop the line
    store.delete_documents("cartitem", {"product_id": product_id})
    store.delete_documents("wishlistitem", {"product_id": product_id})
    logger.info("Product %s deleted by %s", product_id, current["username"])
    return Response(status_code=204)


@router.get("/search", response_model=List[SearchSuggestion])
def search_suggestions(q: str = Query(..., min_length=1), store=Depends(get_store)):
    term = q.lower()
    matches = [p for p in store.get_documents("product") if term in (p.get("name") or "").lower()]
    return matches[:8]


# Categories
@router.get("/categories", response_model=List[CategoryOut])
def list_categories(store=Depends(get_store)):
    return store.get_documents("category")


@router.get("/categories/{slug}", response_model=CategoryOut)
def get_category(slug: str, store=Depends(get_store)):
    cat = store.find_one("category", {"slug": slug})
    if not cat:
        raise HTTPException(404, "Category not found")
    return cat


@router.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, current: dict = Depends(get_current_admin), store=Depends(get_store)):
    data = payload.model_dump()
    data["slug"] = _unique_slug(store, "category", payload.slug or payload.name)
    category_id = store.create_document("category", data)
    logger.info("Category %s created by %s", data["slug"], current["username"])
    return store.get_document("category", category_id)


@router.put("/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    current: dict = Depends(get_current_admin),
    store=Depends(get_store),
):
    if not store.get_document("category", category_id):
        raise HTTPException(404, "Category not found")
    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "slug"):
        if field in changes and changes[field] is None:
            changes.pop(field)
    if "slug" in changes:
        changes["slug"] = _unique_slug(store, "category", changes["slug"], exclude_id=category_id)
    logger.info("Category %s updated by %s", category_id, current["username"])
    return store.update_document("category", category_id, changes)


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: str, current: dict = Depends(get_current_admin), store=Depends(get_store)):
    if not store.delete_document("category", category_id):
        raise HTTPException(404, "Category not found")
    for product in store.get_documents("product", {"category_id": category_id}):
        store.update_document("product", product["id"], {"category_id": None})
    logger.info("Category %s deleted by %s", category_id, current["username"])
    return Response(status_code=204)


# Reviews
@router.get("/products/{product_id}/reviews", response_model=List[ReviewOut])
def get_reviews(product_id: str, store=Depends(get_store)):
    get_product_or_404(store, product_id)
    return store.get_documents("review", {"product_id": product_id}, sort=[("created_at", -1)])


@router.post("/products/{product_id}/reviews", response_model=ReviewOut, status_code=201)
def add_review(
    product_id: str,
    review: ReviewCreate,
    current: dict = Depends(get_current_user),
    store=Depends(get_store),
):
    get_product_or_404(store, product_id)
    data = review.model_dump()
    data.update({
        "product_id": product_id,
        "user_id": current["id"],
        "user_name": current["username"],
        "created_at": datetime.now(timezone.utc),
    })
    rid = store.create_document("review", data)
    # update product rating
    revs = store.get_documents("review", {"product_id": product_id})
    avg = sum(r.get("rating", 0) for r in revs) / len(revs)
    store.update_document("product", product_id, {"rating": round(avg, 2), "review_count": len(revs)})
    return store.get_document("review", rid)
