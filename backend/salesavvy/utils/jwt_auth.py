"""
JWT認証ユーティリティ
Bearer Token（または Cookie）による認証・認可の依存関係を提供する
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from salesavvy.database import get_db
from salesavvy.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_HOURS, SESSION_COOKIE_NAME
from salesavvy.permissions import Permission, has_permission, is_admin

security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """JWTアクセストークンを生成する"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


def resolve_session_user(token: Optional[str], db: Session):
    """トークンが有効ならユーザーを返す。無効・期限切れ・ブロック中なら None"""
    from salesavvy.models.user import User

    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
    except JWTError:
        return None
    if user_id is None:
        return None

    user = db.get(User, int(user_id))
    if user is None or user.is_blocked:
        return None
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
):
    """
    Authorization: Bearer <token> ヘッダー（なければ Cookie）を検証し、ユーザーを返す。
    トークンが無効・期限切れ・ユーザーがブロック中の場合は 401 を返す。
    """
    user = resolve_session_user(_extract_token(request, credentials), db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="認証が必要です。再度ログインしてください",
            headers={"WWW-Authenticate": "Bearer"},
        )
    # 変更通知に操作者を載せる
    db.info["actor"] = {"id": user.id, "full_name": user.full_name, "email": user.email}
    return user


async def require_admin(current_user=Depends(get_current_user)):
    """管理者（is_admin または特権メール）を要求する依存関係。管理者でなければ 403 を返す。"""
    if not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="管理者権限がありません"
        )
    return current_user


def require_permission(*permissions: Permission):
    """指定した権限をすべて持つユーザーを要求する依存関係を作る"""

    async def dependency(current_user=Depends(get_current_user)):
        missing = [p.value for p in permissions if not has_permission(current_user, p)]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"この操作の権限がありません: {', '.join(missing)}"
            )
        return current_user

    return dependency
