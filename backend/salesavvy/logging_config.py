import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _file_handler(path: Path, level: int) -> RotatingFileHandler:
    fh = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=5, encoding="utf-8")
    fh.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    fh.setLevel(level)
    return fh


def setup_logging(level: str = "INFO", logs_dir: Optional[str] = None) -> None:
    """ルートロガーを一度だけ設定する。logs_dir 指定時はJSON形式のローテーションファイルにも出力"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    if root.handlers:
        return

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root.addHandler(console)

    if not logs_dir:
        return

    path = Path(logs_dir)
    path.mkdir(parents=True, exist_ok=True)
    root.addHandler(_file_handler(path / "app.log", logging.INFO))
    root.addHandler(_file_handler(path / "errors.log", logging.ERROR))

    # 受注登録まわりは別ファイルにも残す
    sales_logger = logging.getLogger("salesavvy.sales")
    sales_logger.addHandler(_file_handler(path / "sales.log", logging.INFO))
    sales_logger.setLevel(logging.INFO)
