from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session
from passlib.context import CryptContext
from salesavvy.config import ACCESS_TOKEN_EXPIRE_HOURS, DEBUG, SESSION_COOKIE_NAME
from salesavvy.database import get_db
from salesavvy.permissions import effective_permissions, is_admin
from salesavvy.schemas import UserSignup, UserLogin, UserChangePassword, ProfileUpdate
from salesavvy.stores import get_user_store
from salesavvy.stores.user_store import UserStore
from salesavvy.utils.rate_limiter import login_limiter
from salesavvy.utils.audit_logger import client_info, log_event
from salesavvy.utils.jwt_auth import create_access_token, get_current_user

router = APIRouter(prefix="/api/auth", tags=["auth"])

# パスワードハッシング設定
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

DEFAULT_LANDING = "/dashboard"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def safe_next(target) -> str:
    """ログイン後の遷移先。サイト内の絶対パスのみ許可"""
    if not target or not target.startswith("/") or target.startswith("//") or target.startswith("/api"):
        return DEFAULT_LANDING
    # ブラウザは "\" を "/" と同じに扱うため "/\host" も外部サイトになる
    if "\\" in target or any(ord(c) < 0x20 for c in target):
        return DEFAULT_LANDING
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return DEFAULT_LANDING
    return target


def session_payload(user) -> dict:
    return {
        "user_id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "display_name": user.full_name or user.email,
        "is_admin": is_admin(user),
        "permissions": effective_permissions(user).model_dump(),
    }


def _start_session(response: Response, user) -> str:
    access_token = create_access_token({"sub": str(user.id)})
    response.set_cookie(
        SESSION_COOKIE_NAME,
        access_token,
        max_age=ACCESS_TOKEN_EXPIRE_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=not DEBUG,
    )
    return access_token


@router.post("/signup", status_code=201)
async def signup(
    request: Request,
    response: Response,
    data: UserSignup,
    users: UserStore = Depends(get_user_store),
    db: Session = Depends(get_db),
):
    """新規登録。登録後はそのままログイン状態になる"""
    ip_address, user_agent = client_info(request)
    user = users.create(data.email, hash_password(data.password), full_name=data.full_name)

    log_event(
        event_type="user_signup",
        ip_address=ip_address,
        user_id=user.id,
        username=user.email,
        user_agent=user_agent,
        resource="/api/auth/signup",
        action="POST",
        success=True,
        status_code=201,
        db=db
    )

    access_token = _start_session(response, user)
    return {
        "success": True,
        "access_token": access_token,
        "token_type": "bearer",
        "redirect_to": DEFAULT_LANDING,
        **session_payload(user),
    }


@router.post("/login")
async def login(
    request: Request,
    response: Response,
    data: UserLogin,
    users: UserStore = Depends(get_user_store),
    db: Session = Depends(get_db),
):
    """ユーザーログイン"""
    ip_address, user_agent = client_info(request)

    # ブルートフォース対策：IP単位でレート制限
    if not login_limiter.is_allowed(ip_address):
        remaining = login_limiter.retry_after(ip_address)
        log_event(
            event_type="login_rate_limit_exceeded",
            ip_address=ip_address,
            username=data.email,
            user_agent=user_agent,
            success=False,
            status_code=429,
            db=db
        )
        raise HTTPException(
            status_code=429,
            detail=f"ログイン試行回数が多すぎます。{remaining}秒後に再度お試しください"
        )

    user = users.find_by_email(data.email)

    if not user or not verify_password(data.password, user.password_hash):
        log_event(
            event_type="login_failure",
            ip_address=ip_address,
            username=data.email,
            user_agent=user_agent,
            success=False,
            status_code=401,
            details={"reason": "invalid_credentials"},
            db=db
        )
        raise HTTPException(status_code=401, detail="メールアドレスまたはパスワードが正しくありません")

    if user.is_blocked:
        log_event(
            event_type="login_failure",
            ip_address=ip_address,
            username=data.email,
            user_id=user.id,
            user_agent=user_agent,
            success=False,
            status_code=403,
            details={"reason": "user_blocked"},
            db=db
        )
        raise HTTPException(status_code=403, detail="このアカウントは利用停止中です")

    log_event(
        event_type="login_success",
        ip_address=ip_address,
        user_id=user.id,
        username=user.email,
        user_agent=user_agent,
        success=True,
        status_code=200,
        db=db
    )

    access_token = _start_session(response, user)
    return {
        "success": True,
        "access_token": access_token,
        "token_type": "bearer",
        "redirect_to": safe_next(data.next),
        **session_payload(user),
    }


@router.post("/logout")
async def logout(response: Response):
    """ログアウト（セッションCookieを破棄）"""
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"success": True, "message": "ログアウトしました", "redirect_to": "/auth"}


@router.get("/session")
async def current_session(current_user=Depends(get_current_user)):
    """現在のセッション情報"""
    return session_payload(current_user)


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    current_user=Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    """表示名の変更"""
    user = users.update_profile(current_user, data.full_name)
    return {"success": True, **session_payload(user)}


@router.post("/change-password")
async def change_password(
    data: UserChangePassword,
    current_user=Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    """パスワード変更"""
    if not verify_password(data.old_password, current_user.password_hash):
        raise HTTPException(status_code=401, detail="現在のパスワードが正しくありません")

    users.set_password(current_user, hash_password(data.new_password))
    return {"success": True, "message": "パスワードを変更しました"}
