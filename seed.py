"""Demo data for a fresh store."""
import logging
from datetime import datetime, timedelta, timezone

from auth import get_password_hash
from catalog import slugify

logger = logging.getLogger(__name__)

USERS = [
    {"username": "admin", "email": "admin@example.com", "password": "admin123",
     "first_name": "Admin", "last_name": "User", "role": "admin"},
    {"username": "user", "email": "user@example.com", "password": "password123",
     "first_name": "Regular", "last_name": "User", "role": "user"},
]

CATEGORIES = [
    {"name": "Electronics", "slug": "electronics", "icon": "mobile-alt",
     "image_url": "https://images.unsplash.com/photo-1519183071298-a2962feb14f4"},
    {"name": "Fashion", "slug": "fashion", "icon": "tshirt",
     "image_url": "https://images.unsplash.com/photo-1542060748-10c28b62716f"},
    {"name": "Home", "slug": "home", "icon": "home",
     "image_url": "https://images.unsplash.com/photo-1558882224-dda166733046"},
    {"name": "Health", "slug": "health", "icon": "heartbeat",
     "image_url": "https://images.unsplash.com/photo-1511690656952-34342bb7c2f2"},
    {"name": "Sports", "slug": "sports", "icon": "dumbbell",
     "image_url": "https://images.unsplash.com/photo-1530549387789-4c1017266635"},
    {"name": "Kids", "slug": "kids", "icon": "baby",
     "image_url": "https://images.unsplash.com/photo-1505692795793-89db22b73ee6"},
    {"name": "Kitchen", "slug": "kitchen", "icon": "utensils",
     "image_url": "https://images.unsplash.com/photo-1523289333742-be1143f6b766"},
]

# (name, category slug, price, compare-at price, brand, stock, new, featured, on sale)
PRODUCTS = [
    ("Nike Air Max", "fashion", 129.99, 149.99, "Nike", 50, False, True, True),
    ("Smart Watch X3", "electronics", 199.99, None, "TechGear", 25, False, True, False),
    ("Wireless Headphones", "electronics", 89.99, 99.99, "SoundMax", 40, False, True, True),
    ("Denim Jacket", "fashion", 59.99, None, "Levi's", 30, True, False, False),
    ("Ceramic Table Lamp", "home", 45.0, 55.0, "Lumen", 18, True, False, True),
    ("Vitamin C Serum", "health", 24.5, None, "GlowLab", 60, True, True, False),
    ("Yoga Mat Pro", "sports", 34.99, 39.99, "FlexFit", 75, False, False, True),
    ("Adjustable Dumbbells", "sports", 249.0, None, "IronCore", 8, True, True, False),
    ("Wooden Building Blocks", "kids", 29.99, None, "PlayWise", 45, True, False, False),
    ("Stainless Cookware Set", "kitchen", 89.0, 119.0, "ChefPro", 20, False, True, True),
    ("Bluetooth Speaker", "electronics", 59.99, None, "SoundMax", 5, True, False, False),
    ("Chef's Knife", "kitchen", 74.99, None, "ChefPro", 35, False, False, False),
]


def seed_users(store):
    for user in USERS:
        if store.find_one("user", {"email": user["email"]}):
            continue
        data = {k: v for k, v in user.items() if k != "password"}
        data["password_hash"] = get_password_hash(user["password"])
        data["created_at"] = datetime.now(timezone.utc)
        store.create_document("user", data)


def seed_catalog(store):
    category_ids = {}
    for cat in CATEGORIES:
        existing = store.find_one("category", {"slug": cat["slug"]})
        category_ids[cat["slug"]] = existing["id"] if existing else store.create_document("category", dict(cat))

    # Older rows first so "newest" sorting has something to show
    start = datetime.now(timezone.utc) - timedelta(days=len(PRODUCTS))
    for i, (name, category, price, compare_at, brand, stock, is_new, featured, on_sale) in enumerate(PRODUCTS):
        slug = slugify(name)
        if store.find_one("product", {"slug": slug}):
            continue
        store.create_document("product", {
            "name": name,
            "slug": slug,
            "description": f"{brand} {name.lower()}.",
            "price": price,
            "compare_at_price": compare_at,
            "category_id": category_ids[category],
            "image_url": f"/images/{slug}.jpg",
            "additional_images": [],
            "brand": brand,
            "stock": stock,
            "is_new": is_new,
            "is_featured": featured,
            "is_on_sale": on_sale,
            "rating": 0.0,
            "review_count": 0,
            "created_at": start + timedelta(days=i),
        })


def seed_store(store):
    """Seed demo users into an empty user collection and the catalog into an empty product one."""
    if store.count_documents("user") == 0:
        seed_users(store)
        logger.info("Seeded %d demo users", len(USERS))
    if store.count_documents("product") > 0:
        return False
    seed_catalog(store)
    logger.info("Seeded %d categories and %d products", len(CATEGORIES), len(PRODUCTS))
    return True


def reset_products(store):
    store.delete_documents("review")
    store.delete_documents("cartitem")
    store.delete_documents("wishlistitem")
    store.delete_documents("product")
    seed_catalog(store)
    logger.info("Catalog reset to %d demo products", len(PRODUCTS))
