from contextlib import contextmanager
from typing import Optional
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session

from domain.constants import (
    PG_UNIQUE_VIOLATION,
    PG_FOREIGN_KEY_VIOLATION,
    PG_NOT_NULL_VIOLATION,
    PG_INSUFFICIENT_PRIVILEGE,
    PERMISSION_DENIED_REGEX,
)
from domain.errors import StorageError

def _driver_code(exc: SQLAlchemyError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)

def translate_db_error(exc: SQLAlchemyError) -> StorageError:
    """SQLAlchemy の例外を Postgres 互換コード付きの StorageError に変換する。"""
    message = str(getattr(exc, "orig", None) or exc)
    code = _driver_code(exc)

    if code is None and isinstance(exc, IntegrityError):
        upper = message.upper()
        if "UNIQUE" in upper or "DUPLICATE KEY" in upper:
            code = PG_UNIQUE_VIOLATION
        elif "FOREIGN KEY" in upper:
            code = PG_FOREIGN_KEY_VIOLATION
        elif "NOT NULL" in upper:
            code = PG_NOT_NULL_VIOLATION
    elif code is None and isinstance(exc, OperationalError):
        if PERMISSION_DENIED_REGEX.search(message) or "readonly" in message.lower():
            code = PG_INSUFFICIENT_PRIVILEGE

    return StorageError(message, code)

@contextmanager
def storage_errors(session: Session):
    """ブロック内の DB 例外をロールバックした上で StorageError として送出する。"""
    try:
        yield
    except SQLAlchemyError as e:
        session.rollback()
        raise translate_db_error(e) from e
