from typing import Any, Dict, List, Optional
from decimal import Decimal
import logging

from kamkunji.core.config import APIConfig
from kamkunji.core.exceptions import BusinessLogicError, NotFoundError, ValidationError
from kamkunji.models.product import PRODUCT_STATUSES
from kamkunji.repositories.category_repository import CategoryRepository
from kamkunji.repositories.product_repository import ProductRepository
from kamkunji.utils.date_utils import DateUtils
from kamkunji.utils.formatting_utils import FormattingUtils
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)

APPROVED = "approved"
PENDING = "pending"

EDITABLE_FIELDS = (
    "name", "description", "price", "category_id", "stock_quantity", "condition", "location", "phone",
)


def serialize_product(row: Dict[str, Any], images: List[Dict[str, Any]]) -> Dict[str, Any]:
    urls = [image["url"] for image in images]
    return {
        "id": int(row["id"]),
        "name": row["name"],
        "description": row["description"],
        "price": FormattingUtils.money(row["price"]),
        "price_display": FormattingUtils.format_ksh(row["price"]),
        "category_id": row["category_id"],
        "category_name": row.get("category_name"),
        "seller_id": row["seller_id"],
        "stock_quantity": int(row["stock_quantity"]),
        "is_featured": bool(row["is_featured"]),
        "condition": row["condition"],
        "location": row["location"],
        "phone": row["phone"],
        "status": row["status"],
        "images": urls,
        "primary_image": urls[0] if urls else None,
        "created_at": DateUtils.to_iso_string(row["created_at"]),
        "updated_at": DateUtils.to_iso_string(row["updated_at"]),
    }


class ProductService:
    """
    Product business logic service

    Responsibilities:
    - Storefront visibility (only approved products are ever shown to shoppers)
    - Seller submissions, always queued for moderation
    - Admin moderation: editing, status, featuring, deletion
    """

    def __init__(self, product_repository: ProductRepository,
                 category_repository: CategoryRepository, api_config: APIConfig):
        self.product_repo = product_repository
        self.category_repo = category_repository
        self.api_config = api_config

    def page_size(self, limit: Optional[int]) -> int:
        """Business rule: never return more than max_page_size rows"""
        if limit is None:
            return self.api_config.default_page_size
        if limit > self.api_config.max_page_size:
            logger.warning(f"Requested limit {limit} exceeds maximum {self.api_config.max_page_size}")
        return max(1, min(limit, self.api_config.max_page_size))

    def _with_images(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        images = self.product_repo.get_images(int(row["id"]) for row in rows)
        return [serialize_product(row, images[int(row["id"])]) for row in rows]

    # ---- storefront ---- #

    def list_products(
        self,
        category_id: Optional[int] = None,
        featured: bool = False,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Approved products, newest first

        Business Rules:
        - Pending and rejected products are never listed
        - featured=True restricts to featured products; False applies no filter
        """
        search = ValidationUtils.sanitize_text(search, 100) or None
        rows = self.product_repo.list_products(
            limit=self.page_size(limit),
            offset=max(offset, 0),
            status=APPROVED,
            category_id=category_id,
            featured=True if featured else None,
            search=search,
        )
        logger.info(f"Listed {len(rows)} approved products (category={category_id}, search={search!r})")
        return self._with_images(rows)

    def get_product(self, product_id: int) -> Dict[str, Any]:
        """Approved product with images; anything else is reported as missing"""
        row = self.product_repo.get_by_id(product_id)
        if row is None or row["status"] != APPROVED:
            raise NotFoundError("Product", str(product_id))
        return self._with_images([row])[0]

    def get_related_products(self, product_id: int, limit: int = 4) -> List[Dict[str, Any]]:
        row = self.product_repo.get_by_id(product_id)
        if row is None or row["status"] != APPROVED:
            raise NotFoundError("Product", str(product_id))
        if row["category_id"] is None:
            return []

        rows = self.product_repo.list_products(
            limit=self.page_size(limit),
            status=APPROVED,
            category_id=row["category_id"],
            exclude_id=product_id,
        )
        return self._with_images(rows)

    @staticmethod
    def _checked_price(value: Any) -> Decimal:
        price = FormattingUtils.to_decimal(value)
        if price <= Decimal("0"):
            raise ValidationError(
                "Price must be greater than zero",
                field_errors=[{"field": "price", "message": "Must be greater than zero"}],
            )
        return price

    def _check_category(self, category_id: Optional[int]) -> None:
        if category_id is not None and not self.category_repo.exists(category_id):
            raise ValidationError(
                f"Category {category_id} does not exist",
                field_errors=[{"field": "category_id", "message": "Unknown category"}],
            )

    @staticmethod
    def _check_image_urls(image_urls: List[str]) -> None:
        bad_urls = [url for url in image_urls if not ValidationUtils.validate_url(url)]
        if bad_urls:
            raise ValidationError(
                "Image URLs must be http(s) URLs",
                field_errors=[{"field": "image_urls", "message": url} for url in bad_urls],
            )

    def _create(self, data: Dict[str, Any], image_urls: List[str], seller_id: Optional[int],
                status: str, featured: bool) -> int:
        price = self._checked_price(data["price"])
        self._check_category(data.get("category_id"))
        self._check_image_urls(image_urls)

        record = {
            "name": ValidationUtils.sanitize_text(data["name"], ValidationUtils.MAX_NAME_LENGTH),
            "description": ValidationUtils.sanitize_text(data.get("description"), ValidationUtils.MAX_TEXT_LENGTH),
            "price": str(price),
            "category_id": data.get("category_id"),
            "seller_id": seller_id,
            "stock_quantity": data.get("stock_quantity", 1),
            "is_featured": featured,
            "condition": data.get("condition") or "used",
            "location": ValidationUtils.sanitize_text(data.get("location"), ValidationUtils.MAX_NAME_LENGTH),
            "phone": data.get("phone"),
            "status": status,
        }

        with self.product_repo.transaction() as conn:
            product_id = self.product_repo.create(record, conn)
            self.product_repo.add_images(product_id, image_urls, conn)
        return product_id

    def submit_product(self, data: Dict[str, Any], image_urls: List[str],
                       seller_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Seller submission

        Business Rules:
        - Stored as 'pending' whatever status the caller sends
        - Category, if given, must exist
        - Product row and image rows are written in one transaction;
          the first image is the primary one
        """
        product_id = self._create(data, image_urls, seller_id, PENDING, featured=False)
        logger.info(f"Product {product_id} submitted by seller {seller_id} with {len(image_urls)} images")
        return self.admin_get_product(product_id)

    # ---- admin moderation ---- #

    def admin_list_products(
        self,
        status: Optional[str] = None,
        featured: Optional[bool] = None,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        if status is not None and status not in PRODUCT_STATUSES:
            raise ValidationError(f"Unknown product status: {status}")
        rows = self.product_repo.list_products(
            limit=self.page_size(limit),
            offset=max(offset, 0),
            status=status,
            category_id=category_id,
            featured=featured,
            search=ValidationUtils.sanitize_text(search, 100) or None,
        )
        return self._with_images(rows)

    def admin_get_product(self, product_id: int) -> Dict[str, Any]:
        row = self.product_repo.get_by_id(product_id)
        if row is None:
            raise NotFoundError("Product", str(product_id))
        return self._with_images([row])[0]

    def admin_create_product(self, data: Dict[str, Any], image_urls: List[str]) -> Dict[str, Any]:
        """Admin-listed products skip the moderation queue and go live approved"""
        featured = bool(data.get("is_featured", False))
        product_id = self._create(data, image_urls, None, APPROVED, featured=featured)
        logger.info(f"Product {product_id} created by admin with {len(image_urls)} images")
        return self.admin_get_product(product_id)

    def update_product(self, product_id: int, fields: Dict[str, Any],
                       image_urls: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Admin edit of a product's listing details

        Business Rules:
        - Only the editable listing columns change; status and featuring have
          their own operations
        - A non-empty image_urls replaces every image, first one primary
        - Field and image changes commit together
        """
        changes: Dict[str, Any] = {}
        for column in EDITABLE_FIELDS:
            if column not in fields:
                continue
            value = fields[column]
            if column == "price":
                value = str(self._checked_price(value))
            elif column == "category_id":
                self._check_category(value)
            elif column == "name":
                value = ValidationUtils.sanitize_text(value, ValidationUtils.MAX_NAME_LENGTH)
                if not value:
                    raise ValidationError(
                        "Name cannot be empty", field_errors=[{"field": "name", "message": "Required"}]
                    )
            elif column == "description":
                value = ValidationUtils.sanitize_text(value, ValidationUtils.MAX_TEXT_LENGTH)
            elif column == "location":
                value = ValidationUtils.sanitize_text(value, ValidationUtils.MAX_NAME_LENGTH)
            changes[column] = value

        image_urls = image_urls or []
        self._check_image_urls(image_urls)
        if not changes and not image_urls:
            raise ValidationError("Nothing to update")

        with self.product_repo.transaction() as conn:
            if not self.product_repo.exists(product_id, conn):
                raise NotFoundError("Product", str(product_id))
            self.product_repo.update_fields(product_id, changes, conn)
            if image_urls:
                self.product_repo.delete_images(product_id, conn)
                self.product_repo.add_images(product_id, image_urls, conn)

        logger.info(f"Product {product_id} edited: {sorted(changes)} images={len(image_urls)}")
        return self.admin_get_product(product_id)

    def update_product_status(self, product_id: int, status: str) -> Dict[str, Any]:
        if status not in PRODUCT_STATUSES:
            raise ValidationError(
                f"Status must be one of: {', '.join(PRODUCT_STATUSES)}",
                field_errors=[{"field": "status", "message": "Invalid status"}],
            )
        if self.product_repo.update_status(product_id, status) == 0:
            raise NotFoundError("Product", str(product_id))
        logger.info(f"Product {product_id} moved to {status}")
        return self.admin_get_product(product_id)

    def set_featured(self, product_id: int, featured: bool) -> Dict[str, Any]:
        product = self.admin_get_product(product_id)
        if featured and product["status"] != APPROVED:
            raise BusinessLogicError(
                "Only approved products can be featured", rule="feature_requires_approval"
            )
        self.product_repo.set_featured(product_id, featured)
        logger.info(f"Product {product_id} featured={featured}")
        return self.admin_get_product(product_id)

    def delete_product(self, product_id: int) -> None:
        """
        Remove a product and its images together

        Business Rules:
        - Images and the product row go in one transaction, so a failure at
          any point leaves both in place
        - Order history keeps the copied name and price (order_items.product_id
          becomes NULL)
        """
        with self.product_repo.transaction() as conn:
            if not self.product_repo.exists(product_id, conn):
                raise NotFoundError("Product", str(product_id))
            removed_images = self.product_repo.delete_images(product_id, conn)
            self.product_repo.delete(product_id, conn)

        logger.info(f"Deleted product {product_id} and {removed_images} images")

    def counts_by_status(self) -> Dict[str, int]:
        counts = self.product_repo.count_by_status()
        return {status: counts.get(status, 0) for status in PRODUCT_STATUSES}
