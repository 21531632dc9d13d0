from sqlmodel import SQLModel

from utils.logger import get_logger

logger = get_logger(__name__)

def init_raw_db(bind):
    """
    全テーブルを作成する (存在するものはスキップ)。
    bind には Engine / Connection のどちらでも渡せる。
    """
    # テーブル定義を metadata に登録するための import
    import models  # noqa: F401

    SQLModel.metadata.create_all(bind)
    logger.info("Database schema ensured")
