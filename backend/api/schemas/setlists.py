from pydantic import BaseModel, field_validator
from typing import List, Optional, Any

from domain.constants import DURATION_PLACEHOLDERS
from domain.services.duration import parse_duration_to_seconds

def _coerce_duration(value: Any) -> Optional[int]:
    # "3:45" / "3m 45s" などの入力も受け付ける。"TBD" 等は未設定扱い
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in DURATION_PLACEHOLDERS:
        return None
    return parse_duration_to_seconds(value)

class SetlistCreate(BaseModel):
    band_id: Optional[str] = None
    name: Optional[str] = None

class SetlistRename(BaseModel):
    name: Optional[str] = None

class SetlistCopy(BaseModel):
    band_id: Optional[str] = None

class SetlistSongOverrides(BaseModel):
    bpm: Optional[int] = None
    tuning: Optional[str] = None
    duration_seconds: Optional[int] = None

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def parse_duration(cls, value):
        return _coerce_duration(value)

class SetlistSongAdd(SetlistSongOverrides):
    song_id: Optional[str] = None

class SetlistSongUpdate(SetlistSongOverrides):
    pass

class ReorderItem(SetlistSongOverrides):
    id: str

class ReorderRequest(BaseModel):
    songs: List[ReorderItem]

class CopySongRequest(BaseModel):
    to_setlist_id: Optional[str] = None

class BulkDeleteRequest(BaseModel):
    song_ids: List[str] = []
