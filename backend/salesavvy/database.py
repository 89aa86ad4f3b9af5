from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from salesavvy.config import DATABASE_URL, SQL_ECHO
from salesavvy.realtime import attach_change_tracking, change_feed

if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
    # インメモリDBは接続ごとに別DBになるため、単一接続を共有する
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=SQL_ECHO,
    )
elif DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False}, echo=SQL_ECHO)
else:
    engine = create_engine(DATABASE_URL, echo=SQL_ECHO)


if engine.dialect.name == "sqlite":
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# コミット済みの変更を変更通知チャネルへ流す
attach_change_tracking(SessionLocal, change_feed)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """全テーブルを作成する（モデルを読み込んでから create_all）"""
    from salesavvy import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
