import pytest

from kamkunji.core.exceptions import ConflictError, NotFoundError, ValidationError
from kamkunji.services.category_service import CategoryService


def test_list_ordered_by_name(service, make_category):
    make_category("Toys")
    make_category("Beauty")
    make_category("Kitchen")
    names = [c["name"] for c in service(CategoryService).list_categories()]
    assert names == ["Beauty", "Kitchen", "Toys"]


def test_category_products_only_approved(service, make_category, make_product):
    sports = make_category("Sports")
    ball = make_product(category_id=sports)
    make_product(category_id=sports, status="pending")

    products = service(CategoryService).list_category_products(sports)
    assert [p["id"] for p in products] == [ball]

    with pytest.raises(NotFoundError):
        service(CategoryService).list_category_products(9999)


def test_counts_sorted_by_product_count(service, make_category, make_product):
    books = make_category("Books")
    toys = make_category("Toys")
    make_product(category_id=toys)
    make_product(category_id=toys)
    make_product(category_id=books)

    counted = service(CategoryService).categories_with_counts()
    assert [c["name"] for c in counted][:2] == ["Toys", "Books"]
    assert counted[0]["product_count"] == 2


def test_create_rejects_duplicates(service):
    categories = service(CategoryService)
    created = categories.create_category("Electronics", "🖥️")
    assert created["icon"] == "🖥️"
    with pytest.raises(ConflictError):
        categories.create_category("electronics")
    with pytest.raises(ValidationError):
        categories.create_category("   ")


def test_update_category(service, make_category):
    category_id = make_category("Kitchen")
    updated = service(CategoryService).update_category(category_id, {"description": "Pots and pans"})
    assert updated["description"] == "Pots and pans"
    assert updated["name"] == "Kitchen"


def test_delete_in_use_category_names_the_count(service, make_category, make_product):
    category_id = make_category("Clothing")
    make_product(category_id=category_id)
    make_product(category_id=category_id, status="rejected")

    with pytest.raises(ConflictError) as exc:
        service(CategoryService).delete_category(category_id)
    assert "2 product(s)" in exc.value.message


def test_delete_unused_category(service, make_category):
    category_id = make_category("Beauty")
    service(CategoryService).delete_category(category_id)
    with pytest.raises(NotFoundError):
        service(CategoryService).get_category(category_id)


def test_categories_endpoints(client, make_category, make_product):
    category_id = make_category("Furniture")
    make_product(category_id=category_id)

    listed = client.get("/api/v1/categories").get_json()["data"]
    assert [c["name"] for c in listed] == ["Furniture"]

    response = client.get(f"/api/v1/categories/{category_id}/products")
    assert response.status_code == 200
    assert response.get_json()["data"]["pagination"]["count"] == 1

    assert client.get("/api/v1/categories/999").status_code == 404
