import re
from typing import List, Optional, Dict, Any, Callable, Tuple
from sqlmodel import Session

from domain.constants import (
    ALL_SONGS_NAME,
    ALL_SONGS_NAME_VARIANTS,
    DEFAULT_TUNING,
    DUPLICATE_SONG_MARKERS,
    PG_INSUFFICIENT_PRIVILEGE,
    PG_UNIQUE_VIOLATION,
    POSITION_MARKERS,
    SETLIST_TYPE_ALL_SONGS,
    SETLIST_TYPE_REGULAR,
)
from domain.errors import (
    DUPLICATE_SONG,
    EXCEPTION,
    FORBIDDEN,
    NOT_FOUND,
    POSITION_CONFLICT,
    POSITION_INCONSISTENCY,
    PRECHECK_FAILED,
    SETLIST_MISMATCH,
    STORAGE_ERROR,
    VALIDATION,
    ForbiddenError,
    OperationError,
    OperationResult,
    OrderingError,
    ServiceError,
    StorageError,
    not_found,
    validation_error,
)
from domain.models.setlist import Setlist, SetlistSong
from domain.services.duration import calculate_setlist_total
from domain.services.ordering import SetlistOrdering
from domain.services.share_text import ShareSetlist, ShareSong, build_share_text
from infra.repositories.setlist_repository import SetlistRepository
from infra.repositories.setlist_song_repository import SetlistSongRepository
from infra.repositories.song_repository import SongRepository
from app.services.band_scope import BandScope
from app.services.realtime_service import setlist_event
from app.services.setlist_totals_service import SetlistTotalsService, detail_row
from utils.logger import get_logger

logger = get_logger(__name__)

# setlist_songs 上で呼び出し側が上書きできる項目
OVERRIDE_FIELDS = ("bpm", "tuning", "duration_seconds")

def is_reserved_setlist_name(name: str) -> bool:
    """'All Songs' / 'all-songs' / 'ALL SONG' などの表記揺れも予約名として扱う。"""
    normalized = re.sub(r"[^a-z]", "", (name or "").lower())
    return normalized in ALL_SONGS_NAME_VARIANTS

def is_all_songs_setlist(setlist: Setlist) -> bool:
    return setlist.setlist_type == SETLIST_TYPE_ALL_SONGS or setlist.name == ALL_SONGS_NAME

def _has_marker(error: StorageError, markers) -> bool:
    return error.code == PG_UNIQUE_VIOLATION and any(m in (error.message or "") for m in markers)

def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"

class SetlistAppService:
    """
    セットリストの変更系操作。
    各操作は 1 トランザクションで行い、失敗は OperationResult.error に分類して返す
    (呼び出し側に例外は投げない)。
    成功した操作のリアルタイム通知は pending_events に積まれ、ルーター側で配信する。
    """

    def __init__(self, session: Session, user_id: str):
        self.session = session
        self.user_id = user_id
        self.scope = BandScope(session, user_id)
        self.repository = SetlistRepository(session)
        self.setlist_song_repository = SetlistSongRepository(session)
        self.song_repository = SongRepository(session)
        self.totals_service = SetlistTotalsService(session, user_id)
        self.ordering = SetlistOrdering()
        self.pending_events: List[Tuple[str, Dict[str, Any]]] = []

    # ------------------------------------------------------------------
    # Boundary
    # ------------------------------------------------------------------

    def _run(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> OperationResult:
        queued = len(self.pending_events)
        try:
            return OperationResult.ok(func(*args, **kwargs))
        except ServiceError as e:
            error = e.error
        except ForbiddenError as e:
            error = OperationError(message=str(e), code=FORBIDDEN, status=403)
        except StorageError as e:
            error = self._classify_storage_error(e)
        except OrderingError as e:
            error = OperationError(message=str(e), code=POSITION_INCONSISTENCY, status=500)
        except Exception as e:
            logger.exception(f"{operation} raised an unexpected error")
            error = OperationError(message=str(e), code=EXCEPTION, status=500)

        self.session.rollback()
        del self.pending_events[queued:]
        log = logger.error if error.status >= 500 else logger.warning
        log(f"{operation} failed: [{error.code}] {error.message}")
        return OperationResult.fail(error)

    def _classify_storage_error(self, error: StorageError) -> OperationError:
        if error.is_permission_error:
            return OperationError(
                message=error.message,
                code=error.code or PG_INSUFFICIENT_PRIVILEGE,
                status=403,
                is_rls_issue=True,
            )
        if _has_marker(error, POSITION_MARKERS):
            return OperationError(
                message="Setlist was modified concurrently, please retry",
                code=POSITION_CONFLICT,
                status=409,
            )
        return OperationError(message=error.message, code=error.code or STORAGE_ERROR, status=500)

    def _queue_event(self, action: str, band_id: str, setlist_id: str, **extra):
        self.pending_events.append((band_id, setlist_event(action, band_id, setlist_id, **extra)))

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def list_setlists(self, band_id: str) -> OperationResult:
        return self._run("list_setlists", self._list_setlists, band_id)

    def get_setlists_with_totals(self, band_id: str) -> OperationResult:
        return self._run("get_setlists_with_totals", self.totals_service.get_setlists_with_totals, band_id)

    def get_setlist_detail(self, setlist_id: str) -> OperationResult:
        return self._run("get_setlist_detail", self.totals_service.get_setlist_detail, setlist_id)

    def create_setlist(self, band_id: str, name: str) -> OperationResult:
        return self._run("create_setlist", self._create_setlist, band_id, name)

    def rename_setlist(self, setlist_id: str, name: str) -> OperationResult:
        return self._run("rename_setlist", self._rename_setlist, setlist_id, name)

    def delete_setlist(self, setlist_id: str) -> OperationResult:
        return self._run("delete_setlist", self._delete_setlist, setlist_id)

    def copy_setlist(self, source_setlist_id: str, band_id: str) -> OperationResult:
        return self._run("copy_setlist", self._copy_setlist, source_setlist_id, band_id)

    def add_song_to_setlist(self, setlist_id: str, song_id: str, bpm: Optional[int] = None,
                            tuning: Optional[str] = None, duration_seconds: Optional[int] = None) -> OperationResult:
        return self._run("add_song_to_setlist", self._add_song_to_setlist,
                         setlist_id, song_id, bpm, tuning, duration_seconds)

    def update_setlist_song(self, setlist_id: str, setlist_song_id: str, changes: Dict[str, Any]) -> OperationResult:
        return self._run("update_setlist_song", self._update_setlist_song, setlist_id, setlist_song_id, changes)

    def reorder_setlist_songs(self, setlist_id: str, items: List[Dict[str, Any]]) -> OperationResult:
        return self._run("reorder_setlist_songs", self._reorder_setlist_songs, setlist_id, items)

    def copy_song_to_setlist(self, setlist_song_id: str, source_setlist_id: str,
                             destination_setlist_id: str) -> OperationResult:
        return self._run("copy_song_to_setlist", self._copy_song_to_setlist,
                         setlist_song_id, source_setlist_id, destination_setlist_id)

    def bulk_delete_songs(self, setlist_id: str, song_ids: List[str]) -> OperationResult:
        return self._run("bulk_delete_songs", self._bulk_delete_songs, setlist_id, song_ids)

    def delete_setlist_song(self, setlist_song_id: str, setlist_id: str) -> OperationResult:
        return self._run("delete_setlist_song", self._delete_setlist_song, setlist_song_id, setlist_id)

    def build_setlist_share_text(self, setlist_id: str) -> OperationResult:
        return self._run("build_setlist_share_text", self._build_setlist_share_text, setlist_id)

    # ------------------------------------------------------------------
    # Setlists
    # ------------------------------------------------------------------

    def _list_setlists(self, band_id: str) -> List[Dict[str, Any]]:
        self.scope.require_band_membership(band_id)
        if self._ensure_all_songs_setlist(band_id):
            self.session.commit()
        return self.totals_service.get_setlists_with_totals(band_id)

    def _create_setlist(self, band_id: str, name: str) -> Dict[str, Any]:
        if not band_id or not name or not name.strip():
            raise validation_error("Band ID and name are required")
        if is_reserved_setlist_name(name):
            raise validation_error(f'"{ALL_SONGS_NAME}" is a reserved setlist name')

        self.scope.require_band_membership(band_id)
        self._ensure_all_songs_setlist(band_id)

        setlist = self.repository.create(Setlist(
            band_id=band_id,
            name=name.strip(),
            setlist_type=SETLIST_TYPE_REGULAR,
            total_duration=0,
        ))
        self.session.commit()
        self.session.refresh(setlist)
        logger.info(f"Created setlist {setlist.id} for band {band_id}")

        self._queue_event("created", band_id, setlist.id)
        return setlist.model_dump()

    def _rename_setlist(self, setlist_id: str, name: str) -> Dict[str, Any]:
        if not name or not name.strip():
            raise validation_error("Name is required")

        setlist = self._get_setlist(setlist_id)
        self.scope.require_band_membership(setlist.band_id)
        if is_all_songs_setlist(setlist):
            raise validation_error(f'The "{ALL_SONGS_NAME}" setlist cannot be renamed')
        if is_reserved_setlist_name(name):
            raise validation_error(f'"{ALL_SONGS_NAME}" is a reserved setlist name')

        setlist.name = name.strip()
        self.repository.update(setlist)
        self.session.commit()
        self.session.refresh(setlist)

        self._queue_event("updated", setlist.band_id, setlist.id)
        return setlist.model_dump()

    def _delete_setlist(self, setlist_id: str) -> Dict[str, Any]:
        setlist = self._get_setlist(setlist_id)
        band_id = setlist.band_id
        self.scope.require_band_membership(band_id)

        self.setlist_song_repository.clear(setlist_id)
        self.repository.delete(setlist)
        self.session.commit()
        logger.info(f"Deleted setlist {setlist_id}")

        self._queue_event("deleted", band_id, setlist_id)
        return {"deleted_id": setlist_id}

    def _copy_setlist(self, source_setlist_id: str, band_id: str) -> Dict[str, Any]:
        if not band_id:
            raise validation_error("Band ID is required")

        self.scope.require_band_membership(band_id)
        source = self.scope.require_resource_in_band("setlists", source_setlist_id, band_id)
        rows = self.setlist_song_repository.find_by_setlist(source.id)

        new_setlist = self.repository.create(Setlist(
            band_id=band_id,
            name=f"{source.name} (Copy)",
            setlist_type=SETLIST_TYPE_REGULAR,
            total_duration=source.total_duration,
        ))
        self.session.commit()
        copy_id = new_setlist.id

        try:
            clones = [
                SetlistSong(
                    setlist_id=copy_id,
                    song_id=row.song_id,
                    position=row.position,
                    bpm=row.bpm,
                    tuning=row.tuning,
                    duration_seconds=row.duration_seconds,
                )
                for row in rows
            ]
            if clones:
                self.setlist_song_repository.add_all(clones)
            self.session.commit()
        except Exception:
            # 曲の複製に失敗したら、作成済みのコピーを消して元に戻す
            self.session.rollback()
            logger.error(f"Failed to clone songs into {copy_id}, removing the copy")
            self._discard_setlist(copy_id)
            raise

        logger.info(f"Copied setlist {source.id} -> {copy_id} ({len(rows)} songs)")
        self._queue_event("created", band_id, copy_id)
        new_setlist = self.repository.get_by_id(copy_id)
        self.session.refresh(new_setlist)
        return new_setlist.model_dump()

    def _discard_setlist(self, setlist_id: str):
        setlist = self.repository.get_by_id(setlist_id)
        if not setlist:
            return
        self.setlist_song_repository.clear(setlist_id)
        self.repository.delete(setlist)
        self.session.commit()

    # ------------------------------------------------------------------
    # All Songs
    # ------------------------------------------------------------------

    def _ensure_all_songs_setlist(self, band_id: str) -> Optional[Setlist]:
        """
        バンドの "All Songs" セットリストが無ければ作成し、既存セットリストの曲で埋める。
        作成した場合のみ Setlist を返す (commit は呼び出し側)。
        """
        if self.repository.find_all_songs(band_id):
            return None

        setlist = self.repository.create(Setlist(
            band_id=band_id,
            name=ALL_SONGS_NAME,
            setlist_type=SETLIST_TYPE_ALL_SONGS,
            total_duration=0,
        ))

        others = [s.id for s in self.repository.find_by_band(band_id) if s.id != setlist.id]
        seen = set()
        backfill = []
        for row in self.setlist_song_repository.find_by_setlists(others):
            if row.song_id in seen:
                continue
            seen.add(row.song_id)
            backfill.append(SetlistSong(
                setlist_id=setlist.id,
                song_id=row.song_id,
                position=len(backfill) + 1,
                tuning=row.tuning or DEFAULT_TUNING,
            ))
        if backfill:
            self.setlist_song_repository.add_all(backfill)

        logger.info(f"Created All Songs setlist for band {band_id} with {len(backfill)} songs")
        return setlist

    def _add_to_all_songs(self, band_id: str, song_id: str, bpm, tuning, duration_seconds):
        """ベストエフォート。失敗しても元の追加は成功扱い。"""
        try:
            created = self._ensure_all_songs_setlist(band_id)
            all_songs = created or self.repository.find_all_songs(band_id)
            if self.setlist_song_repository.find_by_song(all_songs.id, song_id):
                self.session.commit()
                return

            positions = [p for _, p in self.setlist_song_repository.list_positions(all_songs.id)]
            position = self.ordering.next_position(positions)
            self.setlist_song_repository.add(SetlistSong(
                setlist_id=all_songs.id,
                song_id=song_id,
                position=position,
                bpm=bpm,
                tuning=tuning or DEFAULT_TUNING,
                duration_seconds=duration_seconds,
            ))
            self.session.commit()
            self._refresh_cached_total(all_songs.id)
        except StorageError as e:
            self.session.rollback()
            logger.warning(f"Could not add song {song_id} to All Songs for band {band_id}: {e}")

    # ------------------------------------------------------------------
    # Setlist songs
    # ------------------------------------------------------------------

    def _add_song_to_setlist(self, setlist_id: str, song_id: str, bpm, tuning, duration_seconds) -> Dict[str, Any]:
        if not song_id:
            raise validation_error("Song ID is required")

        setlist = self._get_setlist(setlist_id)
        band_id = setlist.band_id
        self.scope.require_band_membership(band_id)

        if not self.song_repository.get_by_id(song_id):
            raise not_found("Song not found")

        positions = [p for _, p in self.setlist_song_repository.list_positions(setlist_id)]
        row = SetlistSong(
            setlist_id=setlist_id,
            song_id=song_id,
            position=self.ordering.next_position(positions),
            bpm=bpm,
            tuning=tuning or DEFAULT_TUNING,
            duration_seconds=duration_seconds,
        )
        try:
            self.setlist_song_repository.add(row)
        except StorageError as e:
            if _has_marker(e, DUPLICATE_SONG_MARKERS):
                raise ServiceError("Song is already in this setlist", DUPLICATE_SONG, 409)
            raise
        row_id = row.id
        self.session.commit()

        self._refresh_cached_total(setlist_id)
        if not is_all_songs_setlist(setlist):
            self._add_to_all_songs(band_id, song_id, bpm, tuning, duration_seconds)

        self._queue_event("song_added", band_id, setlist_id, songId=song_id)
        return self._view(setlist_id, row_id)

    def _update_setlist_song(self, setlist_id: str, setlist_song_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        setlist = self._get_setlist(setlist_id)
        self.scope.require_band_membership(setlist.band_id)

        row = self.setlist_song_repository.get_by_id(setlist_song_id)
        if not row or row.setlist_id != setlist_id:
            raise not_found("Setlist song not found")

        self._apply_overrides(row, changes)
        self.setlist_song_repository.update(row)
        self.session.commit()

        self._refresh_cached_total(setlist_id)
        self._queue_event("song_updated", setlist.band_id, setlist_id)
        return self._view(setlist_id, setlist_song_id)

    def _reorder_setlist_songs(self, setlist_id: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if items is None:
            raise validation_error("Songs array is required")

        setlist = self._get_setlist(setlist_id)
        self.scope.require_band_membership(setlist.band_id)

        current = self.setlist_song_repository.list_positions(setlist_id)
        try:
            changes = self.ordering.reorder(current, [item.get("id") for item in items])
        except OrderingError as e:
            raise validation_error(str(e))

        overrides = {item["id"]: item for item in items if any(k in item for k in OVERRIDE_FIELDS)}
        if overrides:
            for row in self.setlist_song_repository.find_by_setlist(setlist_id):
                if row.id in overrides:
                    self._apply_overrides(row, overrides[row.id])
                    self.setlist_song_repository.update(row)

        self.setlist_song_repository.apply_positions(changes)
        self._verify_positions(setlist_id)
        self.session.commit()

        self._refresh_cached_total(setlist_id)
        self._queue_event("reordered", setlist.band_id, setlist_id)
        return self.totals_service.get_setlist_detail(setlist_id)["songs"]

    def _copy_song_to_setlist(self, setlist_song_id: str, source_setlist_id: str,
                              destination_setlist_id: str) -> Dict[str, Any]:
        if not destination_setlist_id:
            raise validation_error("Destination setlist ID is required")

        found = self.setlist_song_repository.get_with_context(setlist_song_id, source_setlist_id)
        if not found:
            raise not_found("Song not found")
        row, source, song = found

        band_id = source.band_id
        self.scope.require_band_membership(band_id)
        self.scope.require_resource_in_band("setlists", destination_setlist_id, band_id)

        positions = [p for _, p in self.setlist_song_repository.list_positions(destination_setlist_id)]
        clone = SetlistSong(
            setlist_id=destination_setlist_id,
            song_id=row.song_id,
            position=self.ordering.next_position(positions),
            bpm=row.bpm,
            tuning=row.tuning,
            duration_seconds=row.duration_seconds,
        )
        title = song.title if song else "Song"
        try:
            self.setlist_song_repository.add(clone)
        except StorageError as e:
            if _has_marker(e, DUPLICATE_SONG_MARKERS):
                raise ServiceError(f'"{title}" is already in the destination setlist', DUPLICATE_SONG, 409)
            raise
        clone_id = clone.id
        self.session.commit()

        self._refresh_cached_total(destination_setlist_id)
        self._queue_event("song_added", band_id, destination_setlist_id, songId=row.song_id)
        return self._view(destination_setlist_id, clone_id)

    def _bulk_delete_songs(self, setlist_id: str, song_ids: List[str]) -> Dict[str, Any]:
        ids = list(dict.fromkeys(song_ids or []))
        if not ids:
            raise validation_error("Song IDs array is required")

        setlist = self._get_setlist(setlist_id)
        band_id = setlist.band_id
        self.scope.require_band_membership(band_id)
        self.scope.require_resource_in_band("setlists", setlist_id, band_id)

        owned = set(self.setlist_song_repository.find_ids_in_setlist(setlist_id, ids))
        if len(owned) != len(ids):
            raise ServiceError(
                "Some songs do not belong to this setlist", VALIDATION, 400,
                details={"invalid_ids": [i for i in ids if i not in owned]},
            )

        deleted = self.setlist_song_repository.delete_many(setlist_id, ids)
        self._compact(setlist_id)
        self.session.commit()
        logger.info(f"Bulk deleted {deleted} songs from setlist {setlist_id}")

        self._refresh_cached_total(setlist_id)
        self._queue_event("songs_deleted", band_id, setlist_id, deletedCount=deleted)
        return {
            "deleted_count": deleted,
            "message": f"Successfully deleted {_plural(deleted, 'song')}",
        }

    def _delete_setlist_song(self, setlist_song_id: str, setlist_id: str) -> Dict[str, Any]:
        # 行を id だけで取得し、所属セットリストの一致は後で確認する
        try:
            existing = self.setlist_song_repository.get_by_id(setlist_song_id)
        except StorageError as e:
            raise ServiceError(f"Pre-check failed: {e.message}", e.code or PRECHECK_FAILED, 500, is_rls_issue=True)

        if existing is None:
            raise ServiceError("Setlist song not found", NOT_FOUND, 404)
        if existing.setlist_id != setlist_id:
            raise ServiceError("Setlist mismatch - unauthorized access", SETLIST_MISMATCH, 403)

        setlist = self._get_setlist(setlist_id)
        band_id = setlist.band_id
        self.scope.require_band_membership(band_id)

        try:
            deleted = self.setlist_song_repository.delete_by_id(setlist_song_id, setlist_id)
        except StorageError as e:
            rls = e.is_permission_error
            raise ServiceError(e.message, e.code or STORAGE_ERROR, 403 if rls else 500, is_rls_issue=rls)
        if deleted == 0:
            raise ServiceError("Delete affected no rows", FORBIDDEN, 403, is_rls_issue=True)

        self._compact(setlist_id)
        self.session.commit()

        self._refresh_cached_total(setlist_id)
        self._queue_event("song_deleted", band_id, setlist_id, songId=existing.song_id)
        return {"deleted_id": setlist_song_id}

    def _build_setlist_share_text(self, setlist_id: str) -> str:
        detail = self.totals_service.get_setlist_detail(setlist_id)
        songs = []
        for row in detail["songs"]:
            song = row.get("song") or {}
            songs.append(ShareSong(
                title=song.get("title") or "Unknown Song",
                artist=song.get("artist") or "Unknown Artist",
                tuning=row["effective_tuning"],
                duration_sec=row["effective_duration_seconds"],
                bpm=row["effective_bpm"],
            ))
        return build_share_text(ShareSetlist(name=detail["setlist"]["name"], songs=songs))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_setlist(self, setlist_id: str) -> Setlist:
        setlist = self.repository.get_by_id(setlist_id)
        if not setlist:
            raise not_found("Setlist not found")
        return setlist

    def _apply_overrides(self, row: SetlistSong, changes: Dict[str, Any]):
        for field in OVERRIDE_FIELDS:
            if field in changes:
                setattr(row, field, changes[field])
        if "tuning" in changes and not changes["tuning"]:
            row.tuning = DEFAULT_TUNING

    def _compact(self, setlist_id: str):
        remaining = self.setlist_song_repository.list_positions(setlist_id)
        self.setlist_song_repository.apply_positions(self.ordering.compact(remaining))
        self._verify_positions(setlist_id)

    def _verify_positions(self, setlist_id: str):
        positions = [p for _, p in self.setlist_song_repository.list_positions(setlist_id)]
        self.ordering.assert_contiguous(positions)

    def _refresh_cached_total(self, setlist_id: str):
        """
        setlists.total_duration は表示には使わないキャッシュ。
        更新に失敗しても操作自体は成功のまま。
        """
        try:
            setlist = self.repository.get_by_id(setlist_id)
            if not setlist:
                return
            views = self.setlist_song_repository.list_views([setlist_id])
            setlist.total_duration = calculate_setlist_total(views)
            self.repository.update(setlist)
            self.session.commit()
        except StorageError as e:
            self.session.rollback()
            logger.warning(f"Failed to refresh cached total for setlist {setlist_id}: {e}")

    def _view(self, setlist_id: str, setlist_song_id: str) -> Dict[str, Any]:
        for view in self.setlist_song_repository.list_views([setlist_id]):
            if view.id == setlist_song_id:
                return detail_row(view)
        raise not_found("Setlist song not found")
