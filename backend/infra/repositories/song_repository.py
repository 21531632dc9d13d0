from typing import Optional
from sqlmodel import Session

from domain.models.song import Song
from infra.database.errors import storage_errors

class SongRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, song_id: str) -> Optional[Song]:
        with storage_errors(self.session):
            return self.session.get(Song, song_id)
