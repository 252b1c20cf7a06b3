from datetime import datetime, timedelta, timezone

import pytest

from catalog import slugify, sort_products
from conftest import add_product


@pytest.fixture
def shelf(store):
    shoes = store.create_document("category", {"name": "Shoes", "slug": "shoes"})
    audio = store.create_document("category", {"name": "Audio", "slug": "audio"})
    now = datetime.now(timezone.utc)
    return {
        "shoes": shoes,
        "audio": audio,
        "runner": add_product(store, "Trail Runner", 75.0, category_id=shoes, brand="Stride",
                              is_featured=True, created_at=now - timedelta(days=3)),
        "loafer": add_product(store, "Suede Loafer", 120.0, category_id=shoes, brand="Dapper",
                              is_on_sale=True, created_at=now - timedelta(days=2)),
        "earbuds": add_product(store, "Earbuds Mini", 50.0, category_id=audio, brand="SoundMax",
                               is_new=True, created_at=now - timedelta(days=1)),
        "speaker": add_product(store, "Desk Speaker", 100.0, category_id=audio, brand="SoundMax",
                               is_new=True, is_featured=True, created_at=now),
        "cable": add_product(store, "Aux Cable", 9.5, created_at=now - timedelta(days=5)),
    }


def test_price_range_filter_and_total(client, shelf):
    res = client.get("/api/products", params={"minPrice": 50, "maxPrice": 100, "limit": 2})
    assert res.status_code == 200
    body = res.json()
    assert all(50 <= p["price"] <= 100 for p in body["products"])
    assert len(body["products"]) == 2
    assert body["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}

    second = client.get("/api/products", params={"minPrice": 50, "maxPrice": 100, "limit": 2, "page": 2}).json()
    assert len(second["products"]) == 1
    seen = {p["id"] for p in body["products"] + second["products"]}
    assert seen == {shelf["runner"]["id"], shelf["earbuds"]["id"], shelf["speaker"]["id"]}


def test_default_order_is_newest_first(client, shelf):
    names = [p["name"] for p in client.get("/api/products").json()["products"]]
    assert names == ["Desk Speaker", "Earbuds Mini", "Suede Loafer", "Trail Runner", "Aux Cable"]


def test_filter_by_category_slug(client, shelf):
    body = client.get("/api/products", params={"category": "audio"}).json()
    assert {p["name"] for p in body["products"]} == {"Earbuds Mini", "Desk Speaker"}

    unknown = client.get("/api/products", params={"category": "nope"}).json()
    assert unknown["products"] == []
    assert unknown["pagination"]["total"] == 0


def test_search_is_case_insensitive_over_name_description_brand(client, shelf):
    by_brand = client.get("/api/products", params={"search": "soundmax"}).json()
    assert by_brand["pagination"]["total"] == 2
    by_name = client.get("/api/products", params={"search": "LOAFER"}).json()
    assert [p["slug"] for p in by_name["products"]] == ["suede-loafer"]
    by_description = client.get("/api/products", params={"search": "cable description"}).json()
    assert by_description["pagination"]["total"] == 1


def test_flag_filters(client, shelf):
    featured = client.get("/api/products", params={"featured": "true"}).json()
    assert {p["name"] for p in featured["products"]} == {"Trail Runner", "Desk Speaker"}
    new = client.get("/api/products", params={"new": "true"}).json()
    assert {p["name"] for p in new["products"]} == {"Earbuds Mini", "Desk Speaker"}
    on_sale = client.get("/api/products", params={"onSale": "true"}).json()
    assert [p["name"] for p in on_sale["products"]] == ["Suede Loafer"]
    not_featured = client.get("/api/products", params={"featured": "false"}).json()
    assert not_featured["pagination"]["total"] == 3


def test_sort_by_price_and_name(client, shelf):
    asc = client.get("/api/products", params={"sortBy": "price", "sortOrder": "asc"}).json()
    assert [p["price"] for p in asc["products"]] == [9.5, 50.0, 75.0, 100.0, 120.0]
    by_name = client.get("/api/products", params={"sortBy": "name", "sortOrder": "asc"}).json()
    assert by_name["products"][0]["name"] == "Aux Cable"


def test_unknown_sort_field_keeps_storage_order():
    products = [{"name": "b"}, {"name": "a"}]
    assert sort_products(products, "colour", "asc") == products


def test_missing_values_sort_last():
    products = [{"brand": None, "name": "x"}, {"brand": "b"}, {"brand": "A"}]
    ordered = sort_products(products, "brand", "asc")
    assert [p["brand"] for p in ordered] == ["A", "b", None]
    assert sort_products(products, "brand", "desc")[-1]["brand"] is None


def test_invalid_query_is_400(client):
    assert client.get("/api/products", params={"page": 0}).status_code == 400
    assert client.get("/api/products", params={"sortOrder": "sideways"}).status_code == 400


def test_get_by_slug(client, shelf):
    res = client.get("/api/products/trail-runner")
    assert res.status_code == 200
    assert res.json()["id"] == shelf["runner"]["id"]
    assert res.json()["reviewCount"] == 0
    assert client.get("/api/products/missing").status_code == 404


def test_related_products(client, shelf):
    related = client.get("/api/products/trail-runner/related").json()
    assert [p["name"] for p in related] == ["Suede Loafer"]
    assert client.get("/api/products/aux-cable/related").json() == []


def test_featured_and_new_arrivals(client, shelf):
    featured = client.get("/api/products/featured").json()
    assert {p["name"] for p in featured} == {"Trail Runner", "Desk Speaker"}
    arrivals = client.get("/api/products/new-arrivals").json()
    assert [p["name"] for p in arrivals] == ["Desk Speaker", "Earbuds Mini"]


def test_search_suggestions(client, shelf):
    res = client.get("/api/search", params={"q": "speak"})
    assert res.json() == [{"name": "Desk Speaker", "slug": "desk-speaker"}]


def test_product_mutations_require_admin(client, user_headers, shelf):
    payload = {"name": "Thing", "price": 1}
    assert client.post("/api/products", json=payload).status_code == 401
    assert client.post("/api/products", json=payload, headers=user_headers).status_code == 403
    assert client.delete(f"/api/products/{shelf['cable']['id']}", headers=user_headers).status_code == 403


def test_admin_creates_product(client, admin_headers, shelf):
    res = client.post("/api/products", headers=admin_headers, json={
        "name": "Studio Monitor Headphones",
        "description": "Flat response",
        "price": 149.0,
        "categoryId": shelf["audio"],
        "stock": 4,
    })
    assert res.status_code == 201
    body = res.json()
    assert body["slug"] == "studio-monitor-headphones"
    assert body["rating"] == 0
    assert body["categoryId"] == shelf["audio"]
    assert client.get("/api/products/studio-monitor-headphones").status_code == 200


def test_create_product_validation(client, admin_headers, shelf):
    dup = client.post("/api/products", headers=admin_headers, json={"name": "Other", "slug": "trail-runner", "price": 1})
    assert dup.status_code == 400
    negative = client.post("/api/products", headers=admin_headers, json={"name": "Neg", "price": -1})
    assert negative.status_code == 400
    bad_category = client.post("/api/products", headers=admin_headers,
                               json={"name": "Lost", "price": 1, "categoryId": "999"})
    assert bad_category.status_code == 400


def test_update_is_partial_merge(client, admin_headers, shelf):
    pid = shelf["runner"]["id"]
    res = client.put(f"/api/products/{pid}", headers=admin_headers, json={"price": 80, "brand": None})
    assert res.status_code == 200
    body = res.json()
    assert body["price"] == 80
    assert body["brand"] is None
    assert body["name"] == "Trail Runner"
    assert body["isFeatured"] is True

    assert client.put("/api/products/999", headers=admin_headers, json={"price": 1}).status_code == 404


def test_update_rejects_taken_slug(client, admin_headers, shelf):
    pid = shelf["runner"]["id"]
    res = client.put(f"/api/products/{pid}", headers=admin_headers, json={"slug": "suede-loafer"})
    assert res.status_code == 400
    same = client.put(f"/api/products/{pid}", headers=admin_headers, json={"slug": "trail-runner"})
    assert same.status_code == 200


def test_route_slugs_are_reserved(client, admin_headers, shelf):
    named = client.post("/api/products", headers=admin_headers, json={"name": "Featured", "price": 1})
    assert named.status_code == 400
    assert named.json()["detail"] == "Slug is reserved"
    explicit = client.post("/api/products", headers=admin_headers,
                           json={"name": "Arrivals", "slug": "New Arrivals", "price": 1})
    assert explicit.status_code == 400
    renamed = client.put(f"/api/products/{shelf['runner']['id']}", headers=admin_headers, json={"slug": "featured"})
    assert renamed.status_code == 400


def test_delete_product(client, admin_headers, shelf):
    pid = shelf["cable"]["id"]
    assert client.delete(f"/api/products/{pid}", headers=admin_headers).status_code == 204
    assert client.get("/api/products/aux-cable").status_code == 404
    assert client.delete(f"/api/products/{pid}", headers=admin_headers).status_code == 404


def test_category_crud(client, admin_headers, store, shelf):
    assert [c["slug"] for c in client.get("/api/categories").json()] == ["shoes", "audio"]
    assert client.get("/api/categories/audio").json()["name"] == "Audio"
    assert client.get("/api/categories/none").status_code == 404

    created = client.post("/api/categories", headers=admin_headers, json={"name": "Home & Garden", "icon": "leaf"})
    assert created.status_code == 201
    assert created.json()["slug"] == "home-garden"
    dup = client.post("/api/categories", headers=admin_headers, json={"name": "Audio"})
    assert dup.status_code == 400

    renamed = client.put(f"/api/categories/{shelf['audio']}", headers=admin_headers, json={"name": "Sound"})
    assert renamed.json()["name"] == "Sound"
    assert renamed.json()["slug"] == "audio"

    assert client.delete(f"/api/categories/{shelf['audio']}", headers=admin_headers).status_code == 204
    assert store.get_document("product", shelf["speaker"]["id"])["category_id"] is None


def test_category_mutations_require_admin(client, user_headers):
    assert client.post("/api/categories", headers=user_headers, json={"name": "X"}).status_code == 403


def test_slugify():
    assert slugify("Chef's Knife") == "chef-s-knife"
    assert slugify("  Hello, World!  ") == "hello-world"
