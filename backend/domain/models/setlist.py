from typing import Optional
from datetime import datetime
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from domain.constants import (
    SETLIST_TYPE_REGULAR,
    DUPLICATE_SONG_CONSTRAINT,
    POSITION_CONSTRAINT,
)
from domain.models.band import new_id

class Setlist(SQLModel, table=True):
    __tablename__ = "setlists"
    id: str = Field(default_factory=new_id, primary_key=True)
    band_id: str = Field(foreign_key="bands.id", index=True)
    name: str
    setlist_type: str = Field(default=SETLIST_TYPE_REGULAR)

    # キャッシュ値。画面に出す合計は常に SetlistTotalsService で再計算する
    total_duration: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

class SetlistSong(SQLModel, table=True):
    __tablename__ = "setlist_songs"
    __table_args__ = (
        UniqueConstraint("setlist_id", "song_id", name=DUPLICATE_SONG_CONSTRAINT),
        UniqueConstraint("setlist_id", "position", name=POSITION_CONSTRAINT),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    setlist_id: str = Field(foreign_key="setlists.id", index=True)
    song_id: str = Field(foreign_key="songs.id", index=True)
    position: int

    # Per-setlist overrides (None = fall back to the catalog song)
    bpm: Optional[int] = None
    tuning: Optional[str] = None
    duration_seconds: Optional[int] = None

    created_at: datetime = Field(default_factory=datetime.now)

class SongSummary(SQLModel):
    id: str
    title: str
    artist: Optional[str] = None
    bpm: Optional[int] = None
    tuning: Optional[str] = None
    duration_seconds: Optional[int] = None
    is_live: bool = False

class SetlistSongView(SQLModel):
    """setlist_songs と songs の JOIN 結果。リポジトリ境界で一度だけ組み立てる。"""
    id: Optional[str] = None
    setlist_id: Optional[str] = None
    song_id: Optional[str] = None
    position: int = 0
    bpm: Optional[int] = None
    tuning: Optional[str] = None
    duration_seconds: Optional[int] = None
    song: Optional[SongSummary] = None
