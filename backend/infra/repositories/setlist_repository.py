from typing import List, Optional
from sqlalchemy import case
from sqlmodel import Session, select, desc
from datetime import datetime

from domain.constants import ALL_SONGS_NAME, SETLIST_TYPE_ALL_SONGS
from domain.models.setlist import Setlist
from infra.database.errors import storage_errors

class SetlistRepository:
    def __init__(self, session: Session):
        self.session = session

    def find_by_band(self, band_id: str) -> List[Setlist]:
        """"All Songs" を先頭に、残りは新しい順。"""
        all_songs_first = case((Setlist.setlist_type == SETLIST_TYPE_ALL_SONGS, 0), else_=1)
        query = (
            select(Setlist)
            .where(Setlist.band_id == band_id)
            .order_by(all_songs_first, desc(Setlist.created_at))
        )
        with storage_errors(self.session):
            return list(self.session.exec(query).all())

    def get_by_id(self, setlist_id: str) -> Optional[Setlist]:
        with storage_errors(self.session):
            return self.session.get(Setlist, setlist_id)

    def find_all_songs(self, band_id: str) -> Optional[Setlist]:
        # 旧データは setlist_type を持たないため名前でも判定する
        query = (
            select(Setlist)
            .where(Setlist.band_id == band_id)
            .where((Setlist.setlist_type == SETLIST_TYPE_ALL_SONGS) | (Setlist.name == ALL_SONGS_NAME))
        )
        with storage_errors(self.session):
            return self.session.exec(query).first()

    def create(self, setlist: Setlist) -> Setlist:
        with storage_errors(self.session):
            self.session.add(setlist)
            self.session.flush()
            self.session.refresh(setlist)
        return setlist

    def update(self, setlist: Setlist) -> Setlist:
        setlist.updated_at = datetime.now()
        with storage_errors(self.session):
            self.session.add(setlist)
            self.session.flush()
        return setlist

    def delete(self, setlist: Setlist):
        with storage_errors(self.session):
            self.session.delete(setlist)
            self.session.flush()
