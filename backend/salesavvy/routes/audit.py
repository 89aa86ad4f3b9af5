from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func
from sqlalchemy.orm import Session
from salesavvy.database import get_db
from salesavvy.models.security_event import SecurityEvent
from salesavvy.services.audit_trail import ACTION_LABELS, audit_trail
from salesavvy.utils.audit_logger import client_info, log_event
from salesavvy.utils.jwt_auth import require_admin
from datetime import datetime, timedelta, timezone
from typing import Optional

router = APIRouter(prefix="/api", tags=["audit"])


@router.get("/audit-trail")
async def get_audit_trail(
    current_user=Depends(require_admin),
    action: Optional[str] = Query(None),
    limit: int = Query(500, ge=1, le=1000),
):
    """売上の変更履歴（新しい順・管理者のみ）"""
    if action and action.upper() not in ACTION_LABELS.values():
        raise HTTPException(status_code=422, detail=f"action は {sorted(ACTION_LABELS.values())} のいずれかです")
    records = audit_trail.records(action=action, limit=limit)
    return {"data": records, "count": len(records)}


@router.get("/admin/security-logs")
async def get_security_logs(
    request: Request,
    current_user=Depends(require_admin),
    event_type: Optional[str] = Query(None),
    days: int = Query(7, ge=1, le=90),
    limit: int = Query(500, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """セキュリティログを取得（管理者のみ）"""
    ip_address, user_agent = client_info(request)
    log_event(
        event_type="security_logs_accessed",
        ip_address=ip_address,
        user_id=current_user.id,
        username=current_user.email,
        user_agent=user_agent,
        resource="/api/admin/security-logs",
        action="GET",
        success=True,
        status_code=200,
        db=db
    )

    cutoff_date = datetime.now(timezone.utc) - timedelta(days=days)
    query = db.query(SecurityEvent).filter(SecurityEvent.timestamp >= cutoff_date)
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)

    # 新しいものから順に取得
    logs = query.order_by(SecurityEvent.timestamp.desc(), SecurityEvent.id.desc()).limit(limit).all()

    return {
        "logs": [
            {
                "id": log.id,
                "timestamp": log.timestamp.isoformat() if log.timestamp else None,
                "event_type": log.event_type,
                "user_id": log.user_id,
                "username": log.username,
                "ip_address": log.ip_address,
                "user_agent": log.user_agent,
                "resource": log.resource,
                "action": log.action,
                "success": log.success,
                "status_code": log.status_code,
                "details": log.details
            }
            for log in logs
        ],
        "total": len(logs),
        "days_lookback": days,
        "limit_used": limit
    }


@router.get("/admin/security-stats")
async def get_security_stats(
    current_user=Depends(require_admin),
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db)
):
    """イベント種別ごとの件数（管理者のみ）"""
    cutoff_date = datetime.now(timezone.utc) - timedelta(days=days)
    rows = (
        db.query(SecurityEvent.event_type, func.count(SecurityEvent.id))
        .filter(SecurityEvent.timestamp >= cutoff_date)
        .group_by(SecurityEvent.event_type)
        .all()
    )
    counts = {event_type: count for event_type, count in rows}

    return {
        "stats": {
            "login_success": counts.get("login_success", 0),
            "login_failure": counts.get("login_failure", 0),
            "rate_limit_exceeded": counts.get("login_rate_limit_exceeded", 0),
            "signups": counts.get("user_signup", 0),
            "permissions_updated": counts.get("permissions_updated", 0),
        },
        "by_event_type": counts,
        "period_days": days,
        "generated_at": datetime.now(timezone.utc).isoformat()
    }
