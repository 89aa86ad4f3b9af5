from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
import threading

from salesavvy.config import API_RATE_LIMIT_PER_MINUTE


class RateLimiter:
    """スライディングウィンドウ方式のレート制限（ブルートフォース対策）"""

    def __init__(self, max_attempts: int = 5, window_seconds: int = 300):
        self.max_attempts = max_attempts
        self.window = timedelta(seconds=window_seconds)
        self.attempts = defaultdict(deque)
        self.lock = threading.Lock()

    def _prune(self, identifier: str, now: datetime) -> deque:
        history = self.attempts[identifier]
        while history and history[0] <= now - self.window:
            history.popleft()
        return history

    def is_allowed(self, identifier: str) -> bool:
        """許可されれば今回の試行を記録して True"""
        now = datetime.now(timezone.utc)
        with self.lock:
            history = self._prune(identifier, now)
            if len(history) >= self.max_attempts:
                return False
            history.append(now)
            return True

    def retry_after(self, identifier: str) -> int:
        """ブロックが解除されるまでの秒数"""
        now = datetime.now(timezone.utc)
        with self.lock:
            history = self._prune(identifier, now)
            if len(history) < self.max_attempts:
                return 0
            remaining = (history[0] + self.window - now).total_seconds()
        return max(0, int(remaining))

    def reset(self, identifier: str = None) -> None:
        with self.lock:
            if identifier is None:
                self.attempts.clear()
            else:
                self.attempts.pop(identifier, None)


# グローバルレート制限インスタンス
login_limiter = RateLimiter(max_attempts=5, window_seconds=300)  # 5分間に5回まで
api_limiter = RateLimiter(max_attempts=API_RATE_LIMIT_PER_MINUTE, window_seconds=60)
