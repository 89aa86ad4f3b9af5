from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from salesavvy.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)  # ログインID
    password_hash = Column(String)
    full_name = Column(String, nullable=True)  # 表示名
    is_admin = Column(Boolean, default=False)
    is_blocked = Column(Boolean, default=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    permission = relationship(
        "UserPermission",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"


class UserPermission(Base):
    """ユーザーごとの売上操作権限"""
    __tablename__ = "user_permissions"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    add_sales = Column(Boolean, default=False)
    edit_sales = Column(Boolean, default=False)
    delete_sales = Column(Boolean, default=False)
    add_sales_detail = Column(Boolean, default=False)
    edit_sales_detail = Column(Boolean, default=False)
    delete_sales_detail = Column(Boolean, default=False)

    user = relationship("User", back_populates="permission")
