#!/usr/bin/env python
"""データベースをリセットするスクリプト（全テーブルを削除して作り直す）"""
from salesavvy import models  # noqa: F401
from salesavvy.database import engine, Base

if __name__ == "__main__":
    print("既存のテーブルを削除しています...")
    Base.metadata.drop_all(bind=engine)

    print("新しいテーブルを作成しています...")
    Base.metadata.create_all(bind=engine)

    print(f"データベースをリセットしました: {engine.url}")
