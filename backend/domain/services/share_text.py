from typing import List, Optional
from pydantic import BaseModel

from domain.constants import DEFAULT_TUNING
from domain.services.duration import format_seconds_human

class ShareSong(BaseModel):
    title: str
    artist: Optional[str] = None
    tuning: Optional[str] = None
    duration_sec: Optional[int] = None
    bpm: Optional[float] = None

class ShareSetlist(BaseModel):
    name: str
    songs: List[ShareSong] = []

def _format_bpm(bpm: Optional[float]) -> str:
    if not bpm:
        return "—"
    return str(int(bpm)) if float(bpm).is_integer() else str(bpm)

def _song_block(song: ShareSong) -> str:
    return "\n".join([
        song.title,
        song.artist or "",
        f"Tuning: {song.tuning or DEFAULT_TUNING} • {format_seconds_human(song.duration_sec or 0)} • {_format_bpm(song.bpm)} BPM",
    ])

def build_share_text(setlist: ShareSetlist) -> str:
    """
    共有用テキストを生成する。合計・各曲とも H:MM:SS / M:SS 表記
    ('6h 03m' のサマリー表記とは別物)。
    """
    total = sum(song.duration_sec or 0 for song in setlist.songs)
    header = (
        f"Setlist: {setlist.name}\n"
        f"Songs: {len(setlist.songs)} • Total Duration: {format_seconds_human(total)}\n"
        "\n\n"
    )
    return header + "\n\n".join(_song_block(song) for song in setlist.songs)
