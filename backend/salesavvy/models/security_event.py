from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, JSON, Boolean
from salesavvy.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class SecurityEvent(Base):
    """セキュリティイベントログ（認証・管理操作）"""
    __tablename__ = "security_events"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, default=_utcnow, index=True)
    event_type = Column(String, index=True)  # login_success, login_failure, permissions_updated など
    user_id = Column(Integer, nullable=True)
    username = Column(String, nullable=True)
    ip_address = Column(String)
    user_agent = Column(String, nullable=True)
    resource = Column(String, nullable=True)
    action = Column(String, nullable=True)  # GET, POST, PUT, DELETE
    details = Column(JSON, nullable=True)
    success = Column(Boolean, default=False)
    status_code = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<SecurityEvent(id={self.id}, event_type={self.event_type}, username={self.username})>"
