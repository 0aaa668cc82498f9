"""
Database bootstrap -- default categories, the first admin and optional demo listings.

Run with:
    python -m kamkunji.seed            # tables, categories, admin
    python -m kamkunji.seed --sample   # ... plus a handful of approved demo products

Every step checks before inserting, so running it again is harmless.
"""

from typing import Any, Dict, Optional
import argparse
import logging

from kamkunji import db
from kamkunji.core.config import Config, SecurityConfig
from kamkunji.repositories.category_repository import CategoryRepository
from kamkunji.repositories.product_repository import ProductRepository
from kamkunji.repositories.user_repository import UserRepository
from kamkunji.services.user_service import UserService

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = (
    ("Electronics", "🖥️"),
    ("Furniture", "🪑"),
    ("Clothing", "👕"),
    ("Books", "📚"),
    ("Kitchen", "🍳"),
    ("Sports", "⚽"),
    ("Toys", "🧸"),
    ("Beauty", "💄"),
)

SAMPLE_PRODUCTS = (
    {
        "name": "Samsung Galaxy A12",
        "description": "Lightly used, 64 GB, comes with charger.",
        "price": "8500.00",
        "category": "Electronics",
        "location": "Nairobi CBD",
        "image": "https://images.unsplash.com/photo-1511707171634-5f897ff02aa9",
    },
    {
        "name": "Three-seater sofa",
        "description": "Grey fabric sofa, good condition, pickup only.",
        "price": "15000.00",
        "category": "Furniture",
        "location": "Westlands",
        "image": "https://images.unsplash.com/photo-1555041469-a586c61ea9bc",
    },
    {
        "name": "Things Fall Apart",
        "description": "Paperback, Chinua Achebe.",
        "price": "450.00",
        "category": "Books",
        "location": "Kilimani",
        "image": "https://images.unsplash.com/photo-1544947950-fa07a98d237f",
    },
)


def initialize_database(
    category_repo: CategoryRepository,
    user_service: UserService,
    security: SecurityConfig,
    create_tables: bool = False,
) -> Dict[str, Any]:
    """
    Idempotent bootstrap. Returns what was done:
    {"tables_created", "categories_created", "admin": None | {"email", "created"}}
    """
    summary: Dict[str, Any] = {"tables_created": False, "categories_created": 0, "admin": None}

    if create_tables:
        db.create_schema()
        summary["tables_created"] = True
        logger.info("Database tables ensured")

    with category_repo.transaction() as conn:
        if category_repo.count(conn) == 0:
            for name, icon in DEFAULT_CATEGORIES:
                category_repo.create(name, icon, None, conn)
            summary["categories_created"] = len(DEFAULT_CATEGORIES)
            logger.info(f"Inserted {len(DEFAULT_CATEGORIES)} default categories")

    if security.default_admin_email and security.default_admin_password:
        admin, created = user_service.create_admin(
            security.default_admin_email, "Admin User", security.default_admin_password
        )
        summary["admin"] = {"email": admin["email"], "created": created}
    else:
        logger.info("DEFAULT_ADMIN_EMAIL/PASSWORD not set; skipping admin bootstrap")

    return summary


def seed_sample_products(product_repo: ProductRepository, category_repo: CategoryRepository) -> int:
    """Approved demo listings for local development; skipped when products exist"""
    if sum(product_repo.count_by_status().values()) > 0:
        return 0

    inserted = 0
    with product_repo.transaction() as conn:
        for sample in SAMPLE_PRODUCTS:
            category = category_repo.get_by_name(sample["category"])
            product_id = product_repo.create(
                {
                    "name": sample["name"],
                    "description": sample["description"],
                    "price": sample["price"],
                    "category_id": category["id"] if category else None,
                    "seller_id": None,
                    "stock_quantity": 1,
                    "is_featured": True,
                    "condition": "used",
                    "location": sample["location"],
                    "phone": None,
                    "status": "approved",
                },
                conn,
            )
            product_repo.add_images(product_id, [sample["image"]], conn)
            inserted += 1
    return inserted


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Initialise the Kamkunji Ndogo database")
    parser.add_argument("--sample", action="store_true", help="also insert demo products")
    args = parser.parse_args(argv)

    config = Config.from_env()
    logging.basicConfig(level=config.app.log_level)
    db.init_engine(config.database)

    category_repo = CategoryRepository()
    summary = initialize_database(
        category_repo, UserService(UserRepository()), config.security, create_tables=True
    )
    print("  [+] Tables ensured")
    print(f"  [+] Categories inserted: {summary['categories_created']}")
    if summary["admin"]:
        state = "created" if summary["admin"]["created"] else "already present"
        print(f"  [+] Admin {summary['admin']['email']} {state}")

    if args.sample:
        count = seed_sample_products(ProductRepository(), category_repo)
        print(f"  [+] Sample products inserted: {count}")


if __name__ == "__main__":
    main()
