from pydantic import BaseModel, Field, field_validator
from datetime import date
from typing import List, Optional

from salesavvy.permissions import PermissionSet


def _validate_password_strength(password: str) -> str:
    """パスワード強度を検証する共通バリデーター"""
    if len(password) < 8:
        raise ValueError("パスワードは8文字以上にしてください")
    if not any(c.isdigit() for c in password):
        raise ValueError("パスワードには数字を1文字以上含めてください")
    if not any(c.isalpha() for c in password):
        raise ValueError("パスワードには英字を1文字以上含めてください")
    return password


def _validate_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError("メールアドレスの形式が正しくありません")
    return value


# 認証

class UserSignup(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=128)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return _validate_password_strength(v)


class UserLogin(BaseModel):
    email: str
    password: str
    next: Optional[str] = None


class UserChangePassword(BaseModel):
    old_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, v):
        return _validate_password_strength(v)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=128)


# ユーザー管理

class UserPermissionsUpdate(BaseModel):
    permissions: PermissionSet
    is_admin: Optional[bool] = None
    is_blocked: Optional[bool] = None


# 社員

class EmployeeCreate(BaseModel):
    empno: Optional[str] = Field(default=None, max_length=16)
    firstname: str = Field(..., min_length=1, max_length=64)
    lastname: Optional[str] = Field(default=None, max_length=64)
    gender: Optional[str] = Field(default=None, max_length=8)
    birthdate: Optional[date] = None
    hiredate: Optional[date] = None


class EmployeeUpdate(BaseModel):
    firstname: Optional[str] = Field(default=None, min_length=1, max_length=64)
    lastname: Optional[str] = Field(default=None, max_length=64)
    gender: Optional[str] = Field(default=None, max_length=8)
    birthdate: Optional[date] = None
    hiredate: Optional[date] = None
    sepdate: Optional[date] = None


# 商品・顧客

class ProductCreate(BaseModel):
    prodcode: str = Field(..., min_length=1, max_length=16)
    description: Optional[str] = Field(default=None, max_length=256)
    unit: Optional[str] = Field(default=None, max_length=16)
    unitprice: Optional[float] = Field(default=None, ge=0)
    effdate: Optional[date] = None


class PriceCreate(BaseModel):
    effdate: date
    unitprice: float = Field(..., ge=0)


class CustomerCreate(BaseModel):
    custno: str = Field(..., min_length=1, max_length=16)
    custname: str = Field(..., min_length=1, max_length=128)
    address: Optional[str] = Field(default=None, max_length=256)
    payterm: Optional[str] = Field(default=None, max_length=16)


# 売上

class OrderLineIn(BaseModel):
    prodcode: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)


class OrderCreate(BaseModel):
    custno: Optional[str] = None
    empno: Optional[str] = None
    salesdate: Optional[date] = None
    lines: List[OrderLineIn] = Field(default_factory=list)
    idempotency_key: Optional[str] = Field(default=None, max_length=64)


class SaleHeaderUpdate(BaseModel):
    custno: Optional[str] = None
    empno: Optional[str] = None
    salesdate: Optional[date] = None


class SaleLineCreate(BaseModel):
    prodcode: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)


class SaleLineUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class DraftHeaderUpdate(BaseModel):
    custno: Optional[str] = None
    empno: Optional[str] = None
    salesdate: Optional[date] = None


class DraftProductSelect(BaseModel):
    prodcode: str = Field(..., min_length=1)


class DraftQuantityUpdate(BaseModel):
    quantity: int


class DraftSubmit(BaseModel):
    idempotency_key: Optional[str] = Field(default=None, max_length=64)
