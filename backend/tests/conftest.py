import os
import pytest
import sys
import tempfile
import uuid
from typing import Generator
from sqlmodel import Session
from alembic.config import Config
from alembic import command

# 1. パス解決: backendディレクトリをsys.pathに追加
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.dirname(CURRENT_DIR)
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

import infra.database.connection as db_connection
from infra.database.schema import init_raw_db
from models import Band, BandMember, Song, Setlist, SetlistSong
from domain.constants import ROLE_ADMIN

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

@pytest.fixture(name="session", scope="function")
def session_fixture(mocker) -> Generator[Session, None, None]:
    """
    テストごとに完全に独立したDB環境（物理ファイル）を構築する。
    単一のエンジンを Alembic と共有します。
    """

    # ユニークなDBファイルパスを生成
    unique_id = str(uuid.uuid4())
    test_db_path = os.path.join(tempfile.gettempdir(), f"roadie_test_{unique_id}.sqlite3")

    # テスト用エンジンの作成
    engine = db_connection.create_sqlite_engine(f"sqlite:///{test_db_path}")

    # アプリケーション全体で使用されるエンジングローバル変数をテスト用に差し替え
    mocker.patch.object(db_connection, "engine", engine)
    mocker.patch.object(db_connection, "DB_PATH", test_db_path)
    mocker.patch.object(db_connection, "DATABASE_URL", f"sqlite:///{test_db_path}")

    # 1. テーブルを直接作成
    init_raw_db(engine)

    # 2. Alembicにテスト用コネクションを注入して stamp を実行
    alembic_ini_path = os.path.join(BACKEND_DIR, "alembic.ini")
    alembic_cfg = Config(alembic_ini_path)
    alembic_cfg.set_main_option("script_location", os.path.join(BACKEND_DIR, "alembic"))

    with engine.begin() as connection:
        alembic_cfg.attributes["connection"] = connection
        command.stamp(alembic_cfg, "head")

    # テスト実行用のセッションを提供
    with Session(engine) as session:
        yield session

    # テスト終了後のクリーンアップ
    engine.dispose()
    if os.path.exists(test_db_path):
        try:
            os.remove(test_db_path)
        except OSError:
            pass

@pytest.fixture(name="client")
def client_fixture(session: Session, mocker) -> Generator:
    """FastAPIのTestClientを提供し、DBセッションをDIで差し替える"""
    from fastapi.testclient import TestClient
    from main import app
    from infra.database.connection import get_session

    # アプリ起動時の init_db / close_db が実DBに触れないようモック化
    mocker.patch("main.init_db")
    mocker.patch("main.close_db")

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    with TestClient(app, headers={"X-User-Id": USER_ID}) as client:
        yield client
    app.dependency_overrides.clear()

@pytest.fixture(name="band")
def band_fixture(session: Session) -> Band:
    """USER_ID がメンバーのバンド"""
    band = Band(name="The Roadies")
    session.add(band)
    session.commit()
    session.add(BandMember(band_id=band.id, user_id=USER_ID, role=ROLE_ADMIN))
    session.commit()
    session.refresh(band)
    return band

@pytest.fixture(name="other_band")
def other_band_fixture(session: Session) -> Band:
    """USER_ID がメンバーではないバンド"""
    band = Band(name="Someone Else")
    session.add(band)
    session.commit()
    session.add(BandMember(band_id=band.id, user_id=OTHER_USER_ID))
    session.commit()
    session.refresh(band)
    return band

@pytest.fixture(name="songs")
def songs_fixture(session: Session):
    songs = [
        Song(title="Opener", artist="The Roadies", duration_seconds=240, bpm=128, tuning="drop_d"),
        Song(title="Ballad", artist="The Roadies", duration_seconds=300, bpm=72),
        Song(title="Encore", artist=None, duration_seconds=None, bpm=None),
    ]
    session.add_all(songs)
    session.commit()
    for song in songs:
        session.refresh(song)
    return songs

def make_setlist(session: Session, band: Band, name: str, songs=(), **overrides) -> Setlist:
    """songs の順に position 1..N で setlist_songs を作成する"""
    setlist = Setlist(band_id=band.id, name=name, **overrides)
    session.add(setlist)
    session.commit()
    for position, song in enumerate(songs, start=1):
        session.add(SetlistSong(setlist_id=setlist.id, song_id=song.id, position=position))
    session.commit()
    session.refresh(setlist)
    return setlist

def positions_of(session: Session, setlist_id: str):
    from sqlmodel import select

    session.expire_all()
    rows = session.exec(
        select(SetlistSong).where(SetlistSong.setlist_id == setlist_id).order_by(SetlistSong.position)
    ).all()
    return [(row.song_id, row.position) for row in rows]
