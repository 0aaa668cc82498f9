from typing import Any, Dict, List, Optional
import logging

from kamkunji.core.exceptions import ConflictError, NotFoundError, ValidationError
from kamkunji.repositories.category_repository import CategoryRepository
from kamkunji.repositories.product_repository import ProductRepository
from kamkunji.services.product_service import ProductService
from kamkunji.utils.date_utils import DateUtils
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


def serialize_category(row: Dict[str, Any]) -> Dict[str, Any]:
    data = {
        "id": int(row["id"]),
        "name": row["name"],
        "icon": row.get("icon"),
        "description": row.get("description"),
    }
    if "product_count" in row:
        data["product_count"] = int(row["product_count"])
    if row.get("created_at") is not None:
        data["created_at"] = DateUtils.to_iso_string(row["created_at"])
    return data


class CategoryService:

    def __init__(self, category_repository: CategoryRepository,
                 product_repository: ProductRepository, product_service: ProductService):
        self.category_repo = category_repository
        self.product_repo = product_repository
        self.product_service = product_service

    def list_categories(self) -> List[Dict[str, Any]]:
        return [serialize_category(row) for row in self.category_repo.list_all()]

    def get_category(self, category_id: int) -> Dict[str, Any]:
        row = self.category_repo.get_by_id(category_id)
        if row is None:
            raise NotFoundError("Category", str(category_id))
        return serialize_category(row)

    def list_category_products(self, category_id: int, limit: Optional[int] = None,
                               offset: int = 0) -> List[Dict[str, Any]]:
        self.get_category(category_id)
        return self.product_service.list_products(category_id=category_id, limit=limit, offset=offset)

    def categories_with_counts(self) -> List[Dict[str, Any]]:
        """Approved product counts, most populated category first"""
        return [serialize_category(row) for row in self.category_repo.list_with_counts()]

    def create_category(self, name: str, icon: Optional[str] = None,
                        description: Optional[str] = None) -> Dict[str, Any]:
        name = ValidationUtils.sanitize_text(name, ValidationUtils.MAX_NAME_LENGTH)
        if not name:
            raise ValidationError("Category name is required")
        if self.category_repo.get_by_name(name) is not None:
            raise ConflictError(f"Category '{name}' already exists", conflict_field="name")

        category_id = self.category_repo.create(name, icon, description)
        logger.info(f"Created category {category_id} ({name})")
        return self.get_category(category_id)

    def update_category(self, category_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        self.get_category(category_id)

        updates = {k: v for k, v in fields.items() if k in ("name", "icon", "description")}
        if "name" in updates:
            updates["name"] = ValidationUtils.sanitize_text(updates["name"], ValidationUtils.MAX_NAME_LENGTH)
            if not updates["name"]:
                raise ValidationError("Category name is required")
            existing = self.category_repo.get_by_name(updates["name"])
            if existing is not None and int(existing["id"]) != category_id:
                raise ConflictError(f"Category '{updates['name']}' already exists", conflict_field="name")

        self.category_repo.update(category_id, updates)
        return self.get_category(category_id)

    def delete_category(self, category_id: int) -> None:
        """
        Business Rules:
        - A category still referenced by products cannot be deleted
        """
        self.get_category(category_id)

        in_use = self.product_repo.count_by_category(category_id)
        if in_use:
            raise ConflictError(
                f"Cannot delete category: it is used by {in_use} product(s)",
                conflict_field="category_id",
            )

        self.category_repo.delete(category_id)
        logger.info(f"Deleted category {category_id}")
