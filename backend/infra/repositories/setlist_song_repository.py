from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from sqlalchemy import delete
from sqlmodel import Session, select

from domain.models.setlist import Setlist, SetlistSong, SetlistSongView, SongSummary
from domain.models.song import Song
from infra.database.errors import storage_errors

class SetlistSongRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, setlist_song_id: str) -> Optional[SetlistSong]:
        with storage_errors(self.session):
            return self.session.get(SetlistSong, setlist_song_id)

    def get_with_context(self, setlist_song_id: str, setlist_id: str) -> Optional[Tuple[SetlistSong, Setlist, Optional[Song]]]:
        """コピー元の行と、その所属セットリスト・カタログ曲をまとめて取得する。"""
        query = (
            select(SetlistSong, Setlist, Song)
            .join(Setlist, Setlist.id == SetlistSong.setlist_id)
            .outerjoin(Song, Song.id == SetlistSong.song_id)
            .where(SetlistSong.id == setlist_song_id)
            .where(SetlistSong.setlist_id == setlist_id)
        )
        with storage_errors(self.session):
            return self.session.exec(query).first()

    def find_by_song(self, setlist_id: str, song_id: str) -> Optional[SetlistSong]:
        query = (
            select(SetlistSong)
            .where(SetlistSong.setlist_id == setlist_id)
            .where(SetlistSong.song_id == song_id)
        )
        with storage_errors(self.session):
            return self.session.exec(query).first()

    def find_by_setlist(self, setlist_id: str) -> List[SetlistSong]:
        query = (
            select(SetlistSong)
            .where(SetlistSong.setlist_id == setlist_id)
            .order_by(SetlistSong.position)
        )
        with storage_errors(self.session):
            return list(self.session.exec(query).all())

    def find_by_setlists(self, setlist_ids: Sequence[str]) -> List[SetlistSong]:
        if not setlist_ids:
            return []
        query = (
            select(SetlistSong)
            .where(SetlistSong.setlist_id.in_(setlist_ids))
            .order_by(SetlistSong.setlist_id, SetlistSong.position)
        )
        with storage_errors(self.session):
            return list(self.session.exec(query).all())

    def list_positions(self, setlist_id: str) -> List[Tuple[str, int]]:
        query = (
            select(SetlistSong.id, SetlistSong.position)
            .where(SetlistSong.setlist_id == setlist_id)
            .order_by(SetlistSong.position)
        )
        with storage_errors(self.session):
            return [(row_id, position) for row_id, position in self.session.exec(query).all()]

    def find_ids_in_setlist(self, setlist_id: str, ids: Iterable[str]) -> List[str]:
        query = (
            select(SetlistSong.id)
            .where(SetlistSong.setlist_id == setlist_id)
            .where(SetlistSong.id.in_(list(ids)))
        )
        with storage_errors(self.session):
            return list(self.session.exec(query).all())

    def list_views(self, setlist_ids: Sequence[str]) -> List[SetlistSongView]:
        """
        setlist_songs + songs を一度の JOIN で取得し、型付きの SetlistSongView に変換する。
        カード表示・詳細表示のどちらもこの結果だけを使う。
        """
        if not setlist_ids:
            return []
        query = (
            select(SetlistSong, Song)
            .outerjoin(Song, Song.id == SetlistSong.song_id)
            .where(SetlistSong.setlist_id.in_(setlist_ids))
            .order_by(SetlistSong.setlist_id, SetlistSong.position)
        )
        with storage_errors(self.session):
            results = self.session.exec(query).all()

        views = []
        for st, song in results:
            views.append(SetlistSongView(
                id=st.id,
                setlist_id=st.setlist_id,
                song_id=st.song_id,
                position=st.position,
                bpm=st.bpm,
                tuning=st.tuning,
                duration_seconds=st.duration_seconds,
                song=SongSummary.model_validate(song, from_attributes=True) if song else None,
            ))
        return views

    def add(self, setlist_song: SetlistSong) -> SetlistSong:
        with storage_errors(self.session):
            self.session.add(setlist_song)
            self.session.flush()
            self.session.refresh(setlist_song)
        return setlist_song

    def add_all(self, setlist_songs: List[SetlistSong]):
        with storage_errors(self.session):
            self.session.add_all(setlist_songs)
            self.session.flush()

    def update(self, setlist_song: SetlistSong) -> SetlistSong:
        with storage_errors(self.session):
            self.session.add(setlist_song)
            self.session.flush()
        return setlist_song

    def delete_by_id(self, setlist_song_id: str, setlist_id: str) -> int:
        statement = (
            delete(SetlistSong)
            .where(SetlistSong.id == setlist_song_id)
            .where(SetlistSong.setlist_id == setlist_id)
        )
        with storage_errors(self.session):
            result = self.session.execute(statement)
            self.session.expire_all()
            return result.rowcount

    def delete_many(self, setlist_id: str, ids: Iterable[str]) -> int:
        """一括削除は1文で行う。"""
        statement = (
            delete(SetlistSong)
            .where(SetlistSong.setlist_id == setlist_id)
            .where(SetlistSong.id.in_(list(ids)))
        )
        with storage_errors(self.session):
            result = self.session.execute(statement)
            self.session.expire_all()
            return result.rowcount

    def clear(self, setlist_id: str) -> int:
        statement = delete(SetlistSong).where(SetlistSong.setlist_id == setlist_id)
        with storage_errors(self.session):
            result = self.session.execute(statement)
            self.session.expire_all()
            return result.rowcount

    def apply_positions(self, changes: Dict[str, int]):
        """
        position を書き換える。(setlist_id, position) の一意制約に途中で
        当たらないよう、一度負の値に退避してから最終値を書き込む。
        """
        if not changes:
            return
        query = select(SetlistSong).where(SetlistSong.id.in_(list(changes)))
        with storage_errors(self.session):
            rows = list(self.session.exec(query).all())
            for row in rows:
                row.position = -changes[row.id]
                self.session.add(row)
            self.session.flush()
            for row in rows:
                row.position = changes[row.id]
                self.session.add(row)
            self.session.flush()
