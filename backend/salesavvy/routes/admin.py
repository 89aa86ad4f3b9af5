from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from salesavvy.database import get_db
from salesavvy.permissions import PERMISSION_LABELS, PermissionSet, effective_permissions, is_admin
from salesavvy.schemas import UserPermissionsUpdate
from salesavvy.stores import get_user_store
from salesavvy.stores.user_store import UserStore
from salesavvy.utils.audit_logger import client_info, log_event
from salesavvy.utils.jwt_auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _user_row(user, index=None) -> dict:
    return {
        "index": index,
        "id": user.id,
        "email": user.email,
        "username": user.full_name or user.email or "Unknown User",
        "is_admin": is_admin(user),
        "is_blocked": bool(user.is_blocked),
        # 保存済みのフラグ（管理者は実効権限が全許可になる）
        "permissions": PermissionSet.from_row(user.permission).model_dump(),
        "effective_permissions": effective_permissions(user).model_dump(),
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


@router.get("/users")
async def list_users(current_user=Depends(require_admin), users: UserStore = Depends(get_user_store)):
    """全アカウントを権限情報と合わせて取得（管理者用）"""
    rows = [_user_row(u, i) for i, u in enumerate(users.list_users(), start=1)]
    return {"data": rows, "count": len(rows)}


@router.get("/permissions")
async def list_permissions(current_user=Depends(require_admin)):
    """権限の一覧（画面のチェックボックス表示用）"""
    data = [{"code": p.value, "label": label} for p, label in PERMISSION_LABELS.items()]
    return {"data": data, "count": len(data)}


@router.put("/users/{user_id}/permissions")
async def update_user_permissions(
    request: Request,
    user_id: int,
    data: UserPermissionsUpdate,
    current_user=Depends(require_admin),
    users: UserStore = Depends(get_user_store),
    db: Session = Depends(get_db),
):
    """対象ユーザーの権限・管理者フラグ・ブロックフラグを更新（管理者用）"""
    ip_address, user_agent = client_info(request)
    target = users.get(user_id)

    # 自分自身の管理者権限剥奪・ブロックは不可
    if target.id == current_user.id and (data.is_admin is False or data.is_blocked):
        log_event(
            event_type="permissions_update_failure",
            ip_address=ip_address,
            user_id=current_user.id,
            username=current_user.email,
            user_agent=user_agent,
            resource=f"/api/admin/users/{user_id}/permissions",
            action="PUT",
            details={"reason": "self_demotion_attempt"},
            success=False,
            status_code=400,
            db=db
        )
        raise HTTPException(status_code=400, detail="自分自身の管理者権限の解除・利用停止はできません")

    before = PermissionSet.from_row(target.permission).model_dump()
    updated = users.set_permissions(target, data.permissions, is_admin=data.is_admin, is_blocked=data.is_blocked)

    log_event(
        event_type="permissions_updated",
        ip_address=ip_address,
        user_id=current_user.id,
        username=current_user.email,
        user_agent=user_agent,
        resource=f"/api/admin/users/{user_id}/permissions",
        action="PUT",
        details={
            "target_user": updated.email,
            "before": before,
            "after": data.permissions.model_dump(),
            "is_admin": data.is_admin,
            "is_blocked": data.is_blocked,
        },
        success=True,
        status_code=200,
        db=db
    )

    return {
        "success": True,
        "message": "権限を更新しました",
        "user": _user_row(updated),
    }
