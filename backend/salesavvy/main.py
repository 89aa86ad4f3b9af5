import logging
import os
import secrets
import string

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from salesavvy.config import DEBUG, CORS_ORIGINS, VERSION, LOG_LEVEL, LOG_DIR, PRIVILEGED_EMAIL
from salesavvy.database import SessionLocal, init_db
from salesavvy.errors import AppError
from salesavvy.logging_config import setup_logging
from salesavvy.permissions import PermissionSet
from salesavvy.routes import admin, audit, auth, customers, dashboard, employees, health, pages, products, sales
from salesavvy.services.audit_trail import start_audit_listener
from salesavvy.stores.user_store import UserStore
from salesavvy.utils.rate_limiter import api_limiter

setup_logging(LOG_LEVEL, LOG_DIR or None)
logger = logging.getLogger("salesavvy")

# テーブル作成
init_db()


def _random_password(length: int = 16) -> str:
    """英字+数字を必ず含むランダムパスワードを生成"""
    alphabet = string.ascii_letters + string.digits
    while True:
        pw = ''.join(secrets.choice(alphabet) for _ in range(length))
        if any(c.isalpha() for c in pw) and any(c.isdigit() for c in pw):
            return pw


def _create_default_admin():
    """管理者が1人もいなければ初期管理者を作成する"""
    from salesavvy.models.user import User

    db = SessionLocal()
    try:
        if db.query(User).filter(User.is_admin.is_(True)).first():
            return
        email = PRIVILEGED_EMAIL or "admin@salesavvy.local"
        users = UserStore(db)
        if users.find_by_email(email):
            return
        init_pw = _random_password()
        user = users.create(email, auth.hash_password(init_pw), full_name="Administrator", is_admin=True)
        users.set_permissions(user, PermissionSet.all_granted())
        logger.warning("初期管理者アカウントを作成しました: email=%s password=%s（必ず変更してください）", email, init_pw)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("初期管理者アカウントを作成できませんでした")
    finally:
        db.close()


_create_default_admin()

# 売上テーブルの変更を監査トレイルへ
start_audit_listener()


# HTTPセキュリティヘッダーミドルウェア
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self'; "
            "frame-ancestors 'none';"
        )
        if not DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# API全体レート制限ミドルウェア（IP単位）
class APIRateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/api/"):
            ip_address = request.client.host if request.client else "unknown"
            if not api_limiter.is_allowed(ip_address):
                remaining = api_limiter.retry_after(ip_address)
                return JSONResponse(
                    status_code=429,
                    content={"detail": f"リクエスト数が多すぎます。{remaining}秒後に再試行してください"}
                )
        return await call_next(request)


# DEBUGモード時のみドキュメントエンドポイントを公開
app = FastAPI(
    title="SaleSavvy API",
    description="売上・社員・商品・ユーザー権限の管理API",
    version=VERSION,
    docs_url="/docs" if DEBUG else None,
    redoc_url="/redoc" if DEBUG else None,
    openapi_url="/openapi.json" if DEBUG else None,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(APIRateLimitMiddleware)

# CORS設定
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("database error: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "データベースエラーが発生しました"})


# ルート登録
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(audit.router)
app.include_router(sales.router)
app.include_router(employees.router)
app.include_router(products.router)
app.include_router(customers.router)
app.include_router(dashboard.router)
app.include_router(pages.router)

# フロントエンド配信
app.mount("/static", StaticFiles(directory=os.path.join(os.path.dirname(__file__), "static")), name="static")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("salesavvy.main:app", host="0.0.0.0", port=8000, reload=DEBUG)
