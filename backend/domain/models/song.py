from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

from domain.models.band import new_id

class Song(SQLModel, table=True):
    """
    楽曲カタログ。セットリスト側の上書きが無い場合のフォールバック値を持つ。
    """
    __tablename__ = "songs"
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(index=True)
    artist: Optional[str] = Field(default=None, index=True)
    duration_seconds: Optional[int] = None
    bpm: Optional[int] = None
    tuning: Optional[str] = None
    is_live: bool = Field(default=False)
    artwork_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
