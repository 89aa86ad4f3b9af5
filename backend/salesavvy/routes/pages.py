"""
画面（HTMLシェル）の配信とセッションゲート

ダッシュボード配下のパスは有効なセッションCookieがなければ
/auth?next=<元のパス> へリダイレクトする。
"""

import os
from urllib.parse import quote
from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.orm import Session
from salesavvy.config import SESSION_COOKIE_NAME
from salesavvy.database import get_db
from salesavvy.routes.auth import DEFAULT_LANDING
from salesavvy.utils.jwt_auth import resolve_session_user

router = APIRouter(include_in_schema=False)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")

DASHBOARD_PATHS = [
    "/dashboard",
    "/sales",
    "/sales/{transno}",
    "/employees",
    "/products",
    "/manage-users",
    "/audit-trail",
    "/settings",
]


def _template(name: str) -> FileResponse:
    return FileResponse(os.path.join(TEMPLATE_DIR, name), media_type="text/html")


def _session_user(request: Request, db: Session):
    return resolve_session_user(request.cookies.get(SESSION_COOKIE_NAME), db)


@router.get("/")
@router.get("/auth")
async def auth_page(request: Request, db: Session = Depends(get_db)):
    """ログイン画面。ログイン済みならダッシュボードへ"""
    if _session_user(request, db) is not None:
        return RedirectResponse(DEFAULT_LANDING, status_code=303)
    return _template("auth.html")


async def dashboard_page(request: Request, db: Session = Depends(get_db)):
    """セッションゲート：未ログインはログイン画面へ、ログイン済みはダッシュボードシェルを返す"""
    if _session_user(request, db) is None:
        return RedirectResponse(f"/auth?next={quote(request.url.path)}", status_code=303)
    return _template("index.html")


for _path in DASHBOARD_PATHS:
    router.add_api_route(_path, dashboard_page, methods=["GET"])
