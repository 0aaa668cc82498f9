from typing import Any, Dict, List, Optional, Tuple
import logging

from werkzeug.security import check_password_hash, generate_password_hash

from kamkunji.core.exceptions import (
    BusinessLogicError, ConflictError, ForbiddenError, NotFoundError, UnauthorizedError,
    ValidationError,
)
from kamkunji.repositories.user_repository import UserRepository
from kamkunji.utils.date_utils import DateUtils
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)

USER_ROLES = ("user", "admin")


def serialize_user(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": int(row["id"]),
        "email": row["email"],
        "full_name": row["full_name"],
        "phone": row["phone"],
        "role": row["role"],
        "is_admin": row["role"] == "admin",
        "created_at": DateUtils.to_iso_string(row["created_at"]),
        "updated_at": DateUtils.to_iso_string(row["updated_at"]),
    }


class UserService:
    """
    Accounts, authentication and admin user management

    Passwords are stored as Werkzeug hashes and never leave this service.
    """

    def __init__(self, user_repository: UserRepository):
        self.user_repo = user_repository

    def _check_phone(self, phone: Optional[str]) -> Optional[str]:
        if not phone:
            return None
        if not ValidationUtils.validate_phone_number(phone):
            raise ValidationError(
                "Invalid phone number format. Please use format: 07XXXXXXXX",
                field_errors=[{"field": "phone", "message": "Expected 07XXXXXXXX"}],
            )
        return phone

    def signup(self, email: str, password: str, full_name: str,
               phone: Optional[str] = None) -> Dict[str, Any]:
        email = ValidationUtils.normalize_email(email)
        ValidationUtils.validate_password(password)
        full_name = ValidationUtils.sanitize_text(full_name, ValidationUtils.MAX_NAME_LENGTH)
        if not full_name:
            raise ValidationError("Full name is required")
        phone = self._check_phone(phone)

        if self.user_repo.get_by_email(email) is not None:
            raise ConflictError("An account with this email already exists", conflict_field="email")

        user_id = self.user_repo.create(email, full_name, generate_password_hash(password), phone)
        logger.info(f"User {user_id} signed up")
        return self.get_user(user_id)

    def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        try:
            email = ValidationUtils.normalize_email(email)
        except ValidationError:
            raise UnauthorizedError("Invalid email or password")

        row = self.user_repo.get_credentials(email)
        if row is None or not row["password_hash"] or not check_password_hash(row["password_hash"], password):
            logger.info("Failed login attempt")
            raise UnauthorizedError("Invalid email or password")

        return serialize_user(row)

    def get_user(self, user_id: int) -> Dict[str, Any]:
        row = self.user_repo.get_by_id(user_id)
        if row is None:
            raise NotFoundError("User", str(user_id))
        return serialize_user(row)

    def require_admin(self, user_id: int) -> Dict[str, Any]:
        row = self.user_repo.get_by_id(user_id)
        if row is None:
            raise UnauthorizedError("Unknown user")
        if row["role"] != "admin":
            raise ForbiddenError("Admin access required")
        return serialize_user(row)

    # ---- admin ---- #

    def list_users(self, role: Optional[str] = None, search: Optional[str] = None,
                   limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        if role is not None and role not in USER_ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(USER_ROLES)}")
        rows = self.user_repo.list_users(
            limit, max(offset, 0), role, ValidationUtils.sanitize_text(search, 100) or None
        )
        return [serialize_user(row) for row in rows]

    def update_user(self, user_id: int, fields: Dict[str, Any],
                    acting_user_id: Optional[int] = None) -> Dict[str, Any]:
        current = self.get_user(user_id)
        updates: Dict[str, Any] = {}

        if "full_name" in fields:
            name = ValidationUtils.sanitize_text(fields["full_name"], ValidationUtils.MAX_NAME_LENGTH)
            if not name:
                raise ValidationError("Full name is required")
            updates["full_name"] = name
        if "phone" in fields:
            updates["phone"] = self._check_phone(fields["phone"])
        if "role" in fields:
            if fields["role"] not in USER_ROLES:
                raise ValidationError(f"Role must be one of: {', '.join(USER_ROLES)}")
            if acting_user_id == user_id and fields["role"] != current["role"]:
                raise BusinessLogicError("Admins cannot change their own role", rule="self_role_change")
            updates["role"] = fields["role"]

        self.user_repo.update(user_id, updates)
        logger.info(f"Updated user {user_id}: {sorted(updates)}")
        return self.get_user(user_id)

    def delete_user(self, user_id: int, acting_user_id: Optional[int] = None) -> None:
        if acting_user_id == user_id:
            raise BusinessLogicError("Admins cannot delete their own account", rule="self_delete")
        if self.user_repo.delete(user_id) == 0:
            raise NotFoundError("User", str(user_id))
        logger.info(f"Deleted user {user_id}")

    def create_admin(self, email: str, full_name: str, password: str) -> Tuple[Dict[str, Any], bool]:
        """
        Idempotent admin bootstrap

        Returns (user, created). An existing admin is returned unchanged; an
        existing plain user with that email is promoted.
        """
        email = ValidationUtils.normalize_email(email)
        existing = self.user_repo.get_by_email(email)
        if existing is not None:
            if existing["role"] != "admin":
                self.user_repo.update(int(existing["id"]), {"role": "admin"})
                logger.info(f"Promoted user {existing['id']} to admin")
            return self.get_user(int(existing["id"])), False

        ValidationUtils.validate_password(password)
        user_id = self.user_repo.create(
            email,
            ValidationUtils.sanitize_text(full_name, ValidationUtils.MAX_NAME_LENGTH) or "Administrator",
            generate_password_hash(password),
            role="admin",
        )
        logger.info(f"Created admin user {user_id}")
        return self.get_user(user_id), True

    def count_users(self) -> int:
        return self.user_repo.count_users()
