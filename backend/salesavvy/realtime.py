"""
テーブル単位の変更通知チャネル

SQLAlchemy のセッションイベントで INSERT / UPDATE / DELETE を収集し、
トランザクションがコミットされた時点で購読者に通知する。
ロールバックされた変更は通知しない。
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import event, inspect

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

_PENDING_KEY = "pending_changes"


@dataclass
class ChangeEvent:
    table: str
    action: str
    record: Dict[str, Any]
    actor: Optional[Dict[str, Any]] = None
    committed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ChangeFeed:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[ChangeEvent], None]]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        """購読を登録し、解除用の関数を返す"""
        with self._lock:
            self._subscribers[table].append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers[table]:
                    self._subscribers[table].remove(callback)

        return unsubscribe

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(change.table, ()))
        for callback in callbacks:
            try:
                callback(change)
            except Exception:
                # 購読者の失敗で書き込み側のリクエストを失敗させない
                logger.exception("change subscriber failed: table=%s action=%s", change.table, change.action)


def _snapshot(obj) -> Dict[str, Any]:
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def _table_of(obj) -> Optional[str]:
    return getattr(obj, "__tablename__", None)


def attach_change_tracking(session_factory, feed: "ChangeFeed") -> None:
    """session_factory（sessionmaker）で作られるセッションの変更を feed に流す"""

    @event.listens_for(session_factory, "after_flush")
    def _collect(session, flush_context):
        pending = session.info.setdefault(_PENDING_KEY, [])
        actor = session.info.get("actor")
        for obj in session.new:
            if _table_of(obj):
                pending.append(ChangeEvent(_table_of(obj), INSERT, _snapshot(obj), actor))
        for obj in session.dirty:
            if _table_of(obj) and session.is_modified(obj, include_collections=False):
                pending.append(ChangeEvent(_table_of(obj), UPDATE, _snapshot(obj), actor))
        for obj in session.deleted:
            if _table_of(obj):
                pending.append(ChangeEvent(_table_of(obj), DELETE, _snapshot(obj), actor))

    @event.listens_for(session_factory, "after_commit")
    def _publish(session):
        for change in session.info.pop(_PENDING_KEY, []):
            feed.publish(change)

    @event.listens_for(session_factory, "after_rollback")
    def _discard(session):
        session.info.pop(_PENDING_KEY, None)


change_feed = ChangeFeed()
