from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from sqlmodel import Session

from infra.database.connection import get_session
from domain.errors import OperationResult
from api.dependencies import get_current_user_id
from api.schemas.setlists import (
    BulkDeleteRequest,
    CopySongRequest,
    ReorderRequest,
    SetlistCopy,
    SetlistCreate,
    SetlistRename,
    SetlistSongAdd,
    SetlistSongUpdate,
)
from app.services.setlist_app_service import SetlistAppService
from app.services.realtime_service import realtime_service

router = APIRouter()

def get_setlist_service(
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> SetlistAppService:
    return SetlistAppService(session, user_id)

def respond(result: OperationResult, service: SetlistAppService, background_tasks: BackgroundTasks):
    """
    OperationResult を HTTP レスポンスに変換する。
    成功時はキューされた更新イベントをレスポンス送信後に配信する。
    """
    if not result.success:
        raise HTTPException(status_code=result.error.status, detail=result.error.to_response())
    for band_id, event in service.pending_events:
        background_tasks.add_task(realtime_service.broadcast, band_id, event)
    return result.data

@router.get("/api/setlists")
def get_setlists(
    background_tasks: BackgroundTasks,
    band_id: str = Query(...),
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.list_setlists(band_id), service, background_tasks)

@router.get("/api/setlists/totals")
def get_setlists_with_totals(
    background_tasks: BackgroundTasks,
    band_id: str = Query(...),
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.get_setlists_with_totals(band_id), service, background_tasks)

@router.post("/api/setlists")
def create_setlist(
    body: SetlistCreate,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.create_setlist(body.band_id, body.name), service, background_tasks)

@router.get("/api/setlists/{setlist_id}")
def get_setlist(
    setlist_id: str,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.get_setlist_detail(setlist_id), service, background_tasks)

@router.put("/api/setlists/{setlist_id}")
def rename_setlist(
    setlist_id: str,
    body: SetlistRename,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.rename_setlist(setlist_id, body.name), service, background_tasks)

@router.delete("/api/setlists/{setlist_id}")
def delete_setlist(
    setlist_id: str,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.delete_setlist(setlist_id), service, background_tasks)

@router.post("/api/setlists/{setlist_id}/copy")
def copy_setlist(
    setlist_id: str,
    body: SetlistCopy,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.copy_setlist(setlist_id, body.band_id), service, background_tasks)

@router.get("/api/setlists/{setlist_id}/share", response_class=PlainTextResponse)
def get_setlist_share_text(
    setlist_id: str,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    """グループチャット等に貼り付ける共有用テキスト"""
    return respond(service.build_setlist_share_text(setlist_id), service, background_tasks)

@router.post("/api/setlists/{setlist_id}/songs")
def add_song_to_setlist(
    setlist_id: str,
    body: SetlistSongAdd,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    result = service.add_song_to_setlist(
        setlist_id,
        body.song_id,
        bpm=body.bpm,
        tuning=body.tuning,
        duration_seconds=body.duration_seconds,
    )
    return respond(result, service, background_tasks)

@router.put("/api/setlists/{setlist_id}/songs")
def reorder_setlist_songs(
    setlist_id: str,
    body: ReorderRequest,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    items = [item.model_dump(exclude_unset=True) for item in body.songs]
    return respond(service.reorder_setlist_songs(setlist_id, items), service, background_tasks)

@router.post("/api/setlists/{setlist_id}/songs/bulk-delete")
def bulk_delete_songs(
    setlist_id: str,
    body: BulkDeleteRequest,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.bulk_delete_songs(setlist_id, body.song_ids), service, background_tasks)

@router.put("/api/setlists/{setlist_id}/songs/{setlist_song_id}")
def update_setlist_song(
    setlist_id: str,
    setlist_song_id: str,
    body: SetlistSongUpdate,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    changes = body.model_dump(exclude_unset=True)
    return respond(service.update_setlist_song(setlist_id, setlist_song_id, changes), service, background_tasks)

@router.delete("/api/setlists/{setlist_id}/songs/{setlist_song_id}")
def delete_setlist_song(
    setlist_id: str,
    setlist_song_id: str,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    return respond(service.delete_setlist_song(setlist_song_id, setlist_id), service, background_tasks)

@router.post("/api/setlists/{setlist_id}/songs/{setlist_song_id}/copy")
def copy_song_to_setlist(
    setlist_id: str,
    setlist_song_id: str,
    body: CopySongRequest,
    background_tasks: BackgroundTasks,
    service: SetlistAppService = Depends(get_setlist_service),
):
    result = service.copy_song_to_setlist(setlist_song_id, setlist_id, body.to_setlist_id)
    return respond(result, service, background_tasks)
