from sqlmodel import create_engine, Session
from sqlalchemy import event
import os
import threading
from config import settings
from infra.database.schema import init_raw_db
from utils.logger import get_logger

logger = get_logger(__name__)

# DBパス設定
DB_PATH = settings.DB_PATH
os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)

DATABASE_URL = settings.DATABASE_URL

def create_sqlite_engine(url: str):
    """
    SQLite エンジンを作成する。
    TestClient はスレッドプールでエンドポイントを実行するため check_same_thread を無効化し、
    同時書き込みはロック待ち (timeout) で直列化する。
    """
    new_engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 15},
    )

    @event.listens_for(new_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return new_engine

engine = create_sqlite_engine(DATABASE_URL)

db_lock = threading.RLock()

def get_alembic_config(connection=None):
    from alembic.config import Config

    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    alembic_cfg = Config(os.path.join(base_dir, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(base_dir, "alembic"))
    if connection is not None:
        alembic_cfg.attributes["connection"] = connection
    return alembic_cfg

def init_db():
    """
    アプリケーション起動時のDB初期化フロー。
    新規DBはスキーマ作成後に stamp、既存DBは Alembic で差分を適用する。
    """
    from alembic import command

    # DBが新規作成かどうかを事前にチェック
    is_new_db = not os.path.exists(DB_PATH) or os.path.getsize(DB_PATH) == 0

    with db_lock:
        try:
            with engine.begin() as connection:
                alembic_cfg = get_alembic_config(connection)

                if is_new_db:
                    init_raw_db(connection)
                    logger.info("New database detected. Stamping version...")
                    command.stamp(alembic_cfg, "head")
                else:
                    logger.info("Existing database detected. Running migrations...")
                    command.upgrade(alembic_cfg, "head")
        except Exception as e:
            logger.error(f"Error during database initialization: {e}")
            raise

def close_db():
    """
    データベース接続を終了する。
    main.py の lifespan イベントから呼び出されます。
    """
    engine.dispose()

def get_session():
    with Session(engine) as session:
        yield session
