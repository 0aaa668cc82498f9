from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, Text, false, func,
)
from sqlalchemy.orm import relationship

from kamkunji.db import Base, BigIntPK

PRODUCT_STATUSES = ("pending", "approved", "rejected")


class Category(Base):
    """
    Static reference data for browsing (Electronics, Furniture, ...).
    """

    __tablename__ = "categories"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    icon = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    products = relationship("Product", back_populates="category")

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"


class Product(Base):
    """
    A second-hand item listed by a seller.

    Sellers submit products as 'pending'; only an admin moves a product to
    'approved' (visible in the storefront) or 'rejected'.

    stock_quantity is usually 1 for second-hand goods but sellers may list
    several identical items.
    """

    __tablename__ = "products"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    category_id = Column(BigIntPK, ForeignKey("categories.id"), nullable=True)
    seller_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=1, server_default="1")
    is_featured = Column(Boolean, nullable=False, default=False, server_default=false())
    condition = Column(Text, nullable=False, default="used", server_default="used")
    location = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pending", server_default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_product_price"),
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock"),
        CheckConstraint(
            "status IN ('pending','approved','rejected')", name="ck_product_status"
        ),
    )

    category = relationship("Category", back_populates="products")
    images = relationship(
        "ProductImage", back_populates="product", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} status={self.status!r}>"


class ProductImage(Base):
    """Image URL attached to a product; at most one is_primary per product."""

    __tablename__ = "product_images"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(
        BigIntPK, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    url = Column(Text, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    product = relationship("Product", back_populates="images")

    def __repr__(self) -> str:
        return f"<ProductImage id={self.id} product_id={self.product_id}>"
