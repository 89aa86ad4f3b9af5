from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from salesavvy.errors import ConflictError, NotFoundError
from salesavvy.models.user import User, UserPermission
from salesavvy.permissions import PermissionSet


class UserStore:
    def __init__(self, db: Session):
        self.db = db

    def list_users(self) -> List[User]:
        return (
            self.db.query(User)
            .options(selectinload(User.permission))
            .order_by(User.id)
            .all()
        )

    def find(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get(self, user_id: int) -> User:
        user = self.find(user_id)
        if user is None:
            raise NotFoundError("ユーザーが見つかりません")
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def create(self, email: str, password_hash: str, full_name: Optional[str] = None, is_admin: bool = False) -> User:
        email = email.strip().lower()
        if self.find_by_email(email) is not None:
            raise ConflictError("このメールアドレスは既に登録されています")
        user = User(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            is_admin=is_admin,
            is_blocked=False,
        )
        user.permission = UserPermission()
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_profile(self, user: User, full_name: Optional[str]) -> User:
        user.full_name = full_name
        user.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)
        return user

    def set_password(self, user: User, password_hash: str) -> None:
        user.password_hash = password_hash
        user.updated_at = datetime.now(timezone.utc)
        self.db.commit()

    def set_permissions(
        self,
        user: User,
        permissions: PermissionSet,
        is_admin: Optional[bool] = None,
        is_blocked: Optional[bool] = None,
    ) -> User:
        """権限行を upsert し、管理者・ブロックフラグを更新する"""
        row = user.permission
        if row is None:
            row = UserPermission(user_id=user.id)
            user.permission = row
        for key, value in permissions.model_dump().items():
            setattr(row, key, value)
        if is_admin is not None:
            user.is_admin = is_admin
        if is_blocked is not None:
            user.is_blocked = is_blocked
        user.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)
        return user
