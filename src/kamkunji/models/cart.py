from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, UniqueConstraint, func

from kamkunji.db import Base, BigIntPK


class CartItem(Base):
    """
    A product in a user's cart. One row per (user, product); adding the same
    product again raises quantity instead of inserting a duplicate.

    ON DELETE CASCADE on both keys: removing a user or a product empties the
    matching cart rows.
    """

    __tablename__ = "cart_items"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(BigIntPK, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1, server_default="1")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_cart_user_product"),
        CheckConstraint("quantity > 0", name="ck_cart_quantity"),
    )

    def __repr__(self) -> str:
        return f"<CartItem user_id={self.user_id} product_id={self.product_id} qty={self.quantity}>"


class WishlistItem(Base):
    __tablename__ = "wishlist"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(BigIntPK, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_wishlist_user_product"),)

    def __repr__(self) -> str:
        return f"<WishlistItem user_id={self.user_id} product_id={self.product_id}>"
