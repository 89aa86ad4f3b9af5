import os
import sys
from dotenv import load_dotenv

load_dotenv()

# アプリケーションバージョン
VERSION = "1.2.0"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salesavvy.db")
# 本番環境では必ず環境変数 DEBUG=false を設定すること
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
# 本番環境では環境変数 CORS_ORIGINS にドメインを指定すること（例: https://example.com）
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = _cors_env.split(",") if _cors_env else []

# JWT認証設定
# 本番環境では必ず環境変数 SECRET_KEY に長いランダム文字列を設定すること
_DEFAULT_SECRET_KEY = "change-this-secret-key-in-production-32chars"
SECRET_KEY = os.getenv("SECRET_KEY", _DEFAULT_SECRET_KEY)

# 本番環境でデフォルトキーのまま起動しようとした場合は起動を拒否
if not DEBUG and SECRET_KEY == _DEFAULT_SECRET_KEY:
    print(
        "[SECURITY ERROR] 本番環境 (DEBUG=false) でデフォルトの SECRET_KEY が使用されています。"
        "環境変数 SECRET_KEY に安全なランダム文字列を設定してください。",
        file=sys.stderr,
    )
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "8"))
SESSION_COOKIE_NAME = "access_token"

# このメールアドレスのアカウントは is_admin フラグに関係なく管理者として扱う
PRIVILEGED_EMAIL = os.getenv("PRIVILEGED_EMAIL", "").strip().lower()

# API全体のレート制限（IP単位・1分あたり）
API_RATE_LIMIT_PER_MINUTE = int(os.getenv("API_RATE_LIMIT_PER_MINUTE", "100"))

# 監査トレイル（メモリ上）に保持する最大件数
AUDIT_TRAIL_MAX_RECORDS = int(os.getenv("AUDIT_TRAIL_MAX_RECORDS", "1000"))

# ログ設定
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "")
