from sqlalchemy import CheckConstraint, Column, DateTime, Text, func

from kamkunji.db import Base, BigIntPK


class User(Base):
    """
    A registered customer, seller or administrator.

    One table carries both identity and role: an admin is simply a user
    with role='admin'.
    """

    __tablename__ = "users"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    email = Column(Text, nullable=False, unique=True)
    full_name = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    password_hash = Column(Text, nullable=True)
    role = Column(Text, nullable=False, default="user", server_default="user")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (CheckConstraint("role IN ('user','admin')", name="ck_user_role"),)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
