import logging
from typing import Optional, Dict, Any

from fastapi import Request

logger = logging.getLogger(__name__)


def client_info(request: Request):
    """(IPアドレス, ユーザーエージェント) を返す"""
    ip_address = request.client.host if request.client else "unknown"
    return ip_address, request.headers.get("user-agent", "unknown")


def log_event(
    event_type: str,
    ip_address: str,
    user_id: Optional[int] = None,
    username: Optional[str] = None,
    user_agent: Optional[str] = None,
    resource: Optional[str] = None,
    action: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = False,
    status_code: Optional[int] = None,
    db=None
):
    """セキュリティイベントを security_events テーブルに記録する。記録に失敗しても処理は続行"""
    from salesavvy.models.security_event import SecurityEvent
    from salesavvy.database import SessionLocal

    if db is None:
        session = SessionLocal()
        should_close = True
    else:
        session = db
        should_close = False

    try:
        session.add(SecurityEvent(
            event_type=event_type,
            user_id=user_id,
            username=username,
            ip_address=ip_address,
            user_agent=user_agent,
            resource=resource,
            action=action,
            details=details or {},
            success=success,
            status_code=status_code
        ))
        session.commit()
        logger.info("security event: %s user=%s ip=%s", event_type, username, ip_address)
    except Exception:
        session.rollback()
        logger.exception("security event could not be recorded: %s", event_type)
    finally:
        if should_close:
            session.close()
