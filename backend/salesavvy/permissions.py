"""
売上操作権限の定義とポリシー判定

権限は列挙型 Permission で表し、判定は has_permission() に一本化する。
各ルートは utils.jwt_auth.require_permission() 経由でこの関数を使う。
"""

from enum import Enum
from typing import Dict

from pydantic import BaseModel

from salesavvy.config import PRIVILEGED_EMAIL


class Permission(str, Enum):
    ADD_SALES = "add_sales"
    EDIT_SALES = "edit_sales"
    DELETE_SALES = "delete_sales"
    ADD_SALES_DETAIL = "add_sales_detail"
    EDIT_SALES_DETAIL = "edit_sales_detail"
    DELETE_SALES_DETAIL = "delete_sales_detail"


PERMISSION_LABELS: Dict[Permission, str] = {
    Permission.ADD_SALES: "Add Sales",
    Permission.EDIT_SALES: "Edit Sales",
    Permission.DELETE_SALES: "Delete Sales",
    Permission.ADD_SALES_DETAIL: "Add Sales Detail",
    Permission.EDIT_SALES_DETAIL: "Edit Sales Detail",
    Permission.DELETE_SALES_DETAIL: "Delete Sales Detail",
}


class PermissionSet(BaseModel):
    """UserPermission 行と1対1で対応する権限フラグの集合"""
    add_sales: bool = False
    edit_sales: bool = False
    delete_sales: bool = False
    add_sales_detail: bool = False
    edit_sales_detail: bool = False
    delete_sales_detail: bool = False

    @classmethod
    def from_row(cls, row) -> "PermissionSet":
        if row is None:
            return cls()
        return cls(**{p.value: bool(getattr(row, p.value)) for p in Permission})

    @classmethod
    def all_granted(cls) -> "PermissionSet":
        return cls(**{p.value: True for p in Permission})

    def allows(self, permission: Permission) -> bool:
        return bool(getattr(self, permission.value))


def is_admin(user) -> bool:
    """is_admin フラグ、または特権メールアドレスなら管理者"""
    if user is None:
        return False
    if user.is_admin:
        return True
    return bool(PRIVILEGED_EMAIL) and (user.email or "").lower() == PRIVILEGED_EMAIL


def effective_permissions(user) -> PermissionSet:
    if user is None or user.is_blocked:
        return PermissionSet()
    if is_admin(user):
        return PermissionSet.all_granted()
    return PermissionSet.from_row(user.permission)


def has_permission(user, permission: Permission) -> bool:
    """ブロック中は常に不可、管理者は常に可、それ以外は保存済みフラグに従う"""
    return effective_permissions(user).allows(permission)
