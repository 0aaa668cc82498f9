from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Text, func

from kamkunji.db import Base, BigIntPK, JSONType

REPORT_STATUSES = ("pending", "resolved", "dismissed")


class Report(Base):
    """A customer complaint about a listing, triaged by admins."""

    __tablename__ = "reports"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(BigIntPK, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    reporter_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('pending','resolved','dismissed')", name="ck_report_status"),
    )

    def __repr__(self) -> str:
        return f"<Report id={self.id} product_id={self.product_id} status={self.status!r}>"


class EmailLog(Base):
    """
    Audit row for every outgoing email, successful or not.

    metadata_ maps to the 'metadata' column (provider message id, error text).
    """

    __tablename__ = "email_logs"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    to_email = Column(Text, nullable=False)
    subject = Column(Text, nullable=False)
    status = Column(Text, nullable=False)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return f"<EmailLog id={self.id} to={self.to_email!r} status={self.status!r}>"
