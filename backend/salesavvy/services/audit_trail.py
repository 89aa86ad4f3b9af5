import threading
import uuid
from collections import deque
from typing import Any, Dict, List, Optional

from salesavvy.config import AUDIT_TRAIL_MAX_RECORDS
from salesavvy.realtime import ChangeEvent, ChangeFeed, INSERT, UPDATE, DELETE, change_feed

ACTION_LABELS = {
    INSERT: "ADDED",
    UPDATE: "EDITED",
    DELETE: "DELETED",
}


def resolve_display_name(actor: Optional[Dict[str, Any]]) -> str:
    """表示名 → メールアドレス → ユーザーID の順で名前を決める"""
    if not actor:
        return "System"
    for key in ("full_name", "email"):
        value = actor.get(key)
        if value:
            return value
    if actor.get("id") is not None:
        return str(actor["id"])
    return "System"


class AuditTrail:
    """売上テーブルの変更履歴（メモリ上のみ。再起動で消える）"""

    def __init__(self, max_records: int = AUDIT_TRAIL_MAX_RECORDS):
        self._records = deque(maxlen=max_records)
        self._lock = threading.Lock()

    def handle(self, change: ChangeEvent) -> Dict[str, Any]:
        actor = change.actor or {}
        record = {
            "id": uuid.uuid4().hex,
            "sale_id": change.record.get("transno"),
            "action": ACTION_LABELS.get(change.action, change.action),
            "user_id": actor.get("id"),
            "username": resolve_display_name(change.actor),
            "timestamp": change.committed_at.isoformat(),
        }
        # 新しいものを先頭に
        with self._lock:
            self._records.appendleft(record)
        return record

    def records(self, action: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._records)
        if action:
            items = [r for r in items if r["action"] == action.upper()]
        if limit is not None:
            items = items[:limit]
        return items

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self):
        return len(self._records)


audit_trail = AuditTrail()


def start_audit_listener(feed: ChangeFeed = change_feed, trail: AuditTrail = audit_trail):
    """sales テーブルの変更通知を購読する。解除関数を返す"""
    return feed.subscribe("sales", trail.handle)
