from enum import Enum
from typing import Dict, FrozenSet

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, Text, func
from sqlalchemy.orm import relationship

from kamkunji.db import Base, BigIntPK, JSONType


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# The one order lifecycle. delivered and cancelled are terminal.
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    try:
        return OrderStatus(new) in ORDER_TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return False


class Order(Base):
    """
    A customer purchase paid through M-Pesa.

    status follows ORDER_TRANSITIONS; payment_status tracks the mobile money
    leg separately so a failed STK push can be retried without losing the
    order.

    shipping_address holds {address, city, additional_info} as JSON;
    full_name/email/phone are copied from checkout so guest orders
    (user_id NULL) stay contactable.

    checkout_request_id is the M-Pesa CheckoutRequestID used to poll or
    match the asynchronous callback.
    """

    __tablename__ = "orders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    full_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    shipping_address = Column(JSONType, nullable=False, default=dict)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False, server_default=OrderStatus.PENDING_PAYMENT.value)
    payment_status = Column(Text, nullable=False, server_default=PaymentStatus.PENDING.value)
    payment_method = Column(Text, nullable=False, server_default="mpesa")
    checkout_request_id = Column(Text, nullable=True, index=True)
    payment_reference = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_payment','paid','processing','shipped','delivered','cancelled')",
            name="ck_order_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending','paid','failed')", name="ck_order_payment_status"
        ),
        CheckConstraint("total_amount >= 0", name="ck_order_total"),
    )

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status!r} total={self.total_amount}>"


class OrderItem(Base):
    """
    A line item. price and product_name are copied at order time so later
    edits or deletion of the product do not alter historical orders.
    """

    __tablename__ = "order_items"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigIntPK, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(BigIntPK, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_item_quantity"),
        CheckConstraint("price >= 0", name="ck_item_price"),
    )

    order = relationship("Order", back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem id={self.id} product_id={self.product_id} qty={self.quantity}>"
