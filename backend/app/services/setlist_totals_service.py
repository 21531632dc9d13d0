from collections import defaultdict
from typing import Any, Dict, List, Sequence
from sqlmodel import Session

from domain.models.setlist import Setlist, SetlistSongView
from domain.errors import not_found
from domain.services.duration import (
    calculate_setlist_total,
    format_duration_summary,
    format_song_duration,
    row_effective_duration,
)
from infra.repositories.setlist_repository import SetlistRepository
from infra.repositories.setlist_song_repository import SetlistSongRepository
from app.services.band_scope import BandScope
from utils.tuning import get_tuning_info

def summarize_rows(rows: Sequence[SetlistSongView]) -> Dict[str, Any]:
    """カード・詳細どちらの合計もこの関数で作る。"""
    total = calculate_setlist_total(rows)
    return {
        "song_count": len(rows),
        "total_duration_seconds": total,
        "formatted_summary": format_duration_summary(total),
    }

def detail_row(row: SetlistSongView) -> Dict[str, Any]:
    song = row.song
    effective_tuning = row.tuning or (song.tuning if song else None)
    tuning_info = get_tuning_info(effective_tuning)
    effective = row_effective_duration(row)

    data = row.model_dump()
    data["effective_duration_seconds"] = effective
    data["duration_display"] = format_song_duration(effective)
    data["effective_bpm"] = row.bpm if row.bpm is not None else (song.bpm if song else None)
    data["effective_tuning"] = effective_tuning
    data["tuning_name"] = tuning_info["name"]
    data["tuning_notes"] = tuning_info["notes"]
    return data

class SetlistTotalsService:
    """
    セットリストの読み取りモデル。
    setlists.total_duration (キャッシュ) は使わず、常に setlist_songs + songs から再計算する。
    """

    def __init__(self, session: Session, user_id: str):
        self.session = session
        self.scope = BandScope(session, user_id)
        self.repository = SetlistRepository(session)
        self.song_repository = SetlistSongRepository(session)

    def get_setlists_with_totals(self, band_id: str) -> List[Dict[str, Any]]:
        self.scope.require_band_membership(band_id)

        setlists = self.repository.find_by_band(band_id)
        views = self.song_repository.list_views([s.id for s in setlists])

        grouped: Dict[str, List[SetlistSongView]] = defaultdict(list)
        for view in views:
            grouped[view.setlist_id].append(view)

        return [self._summary(setlist, grouped[setlist.id]) for setlist in setlists]

    def get_setlist_detail(self, setlist_id: str) -> Dict[str, Any]:
        setlist = self.repository.get_by_id(setlist_id)
        if not setlist:
            raise not_found("Setlist not found")
        self.scope.require_band_membership(setlist.band_id)

        views = self.song_repository.list_views([setlist.id])
        return {
            "setlist": self._summary(setlist, views),
            "songs": [detail_row(v) for v in views],
        }

    def _summary(self, setlist: Setlist, rows: Sequence[SetlistSongView]) -> Dict[str, Any]:
        data = {
            "id": setlist.id,
            "band_id": setlist.band_id,
            "name": setlist.name,
            "setlist_type": setlist.setlist_type,
            "created_at": setlist.created_at,
            "updated_at": setlist.updated_at,
        }
        data.update(summarize_rows(rows))
        return data
