from fastapi.testclient import TestClient
from sqlmodel import Session, select
from models import Setlist, SetlistSong
from conftest import make_setlist, positions_of

def _rows(session: Session, setlist_id: str):
    session.expire_all()
    return session.exec(
        select(SetlistSong).where(SetlistSong.setlist_id == setlist_id).order_by(SetlistSong.position)
    ).all()

def _all_songs(session: Session, band_id: str) -> Setlist:
    session.expire_all()
    return session.exec(
        select(Setlist).where(Setlist.band_id == band_id).where(Setlist.setlist_type == "all_songs")
    ).one()

# --- add ---

def test_add_song_to_setlist(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1")

    response = client.post(f"/api/setlists/{s1.id}/songs", json={"song_id": songs[0].id, "duration_seconds": "3:30"})
    assert response.status_code == 200
    data = response.json()
    assert data["position"] == 1
    assert data["duration_seconds"] == 210
    assert data["duration_display"] == "3:30"
    assert data["tuning"] == "standard"
    assert data["tuning_name"] == "Standard Tuning"
    assert data["song"]["title"] == "Opener"

    # キャッシュ合計も更新される
    session.expire_all()
    assert session.get(Setlist, s1.id).total_duration == 210

def test_add_song_appends_to_end(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs[:2])
    response = client.post(f"/api/setlists/{s1.id}/songs", json={"song_id": songs[2].id})
    assert response.json()["position"] == 3
    assert [p for _, p in positions_of(session, s1.id)] == [1, 2, 3]

def test_add_song_also_adds_to_all_songs(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1")
    client.post(f"/api/setlists/{s1.id}/songs", json={"song_id": songs[0].id})
    client.post(f"/api/setlists/{s1.id}/songs", json={"song_id": songs[1].id, "bpm": 80})

    all_songs = _all_songs(session, band.id)
    rows = _rows(session, all_songs.id)
    assert [(r.song_id, r.position) for r in rows] == [(songs[0].id, 1), (songs[1].id, 2)]
    assert rows[1].bpm == 80

def test_add_duplicate_song(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", [songs[0]])

    response = client.post(f"/api/setlists/{s1.id}/songs", json={"song_id": songs[0].id})
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "DUPLICATE_SONG"
    assert detail["message"] == "Song is already in this setlist"
    assert len(_rows(session, s1.id)) == 1

def test_add_unknown_song(client: TestClient, session: Session, band):
    s1 = make_setlist(session, band, "S1")
    response = client.post(f"/api/setlists/{s1.id}/songs", json={"song_id": "nope"})
    assert response.status_code == 404

def test_add_song_to_other_band(client: TestClient, session: Session, other_band, songs):
    theirs = make_setlist(session, other_band, "Theirs")
    response = client.post(f"/api/setlists/{theirs.id}/songs", json={"song_id": songs[0].id})
    assert response.status_code == 403
    assert _rows(session, theirs.id) == []

# --- update ---

def test_update_setlist_song(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", [songs[0]])
    row_id = _rows(session, s1.id)[0].id

    response = client.put(f"/api/setlists/{s1.id}/songs/{row_id}", json={"bpm": 140, "duration_seconds": "2:00"})
    assert response.status_code == 200
    data = response.json()
    assert data["bpm"] == 140
    assert data["effective_bpm"] == 140
    assert data["effective_duration_seconds"] == 120
    # 指定していない項目はそのまま
    assert data["tuning"] is None
    assert data["effective_tuning"] == "drop_d"

def test_update_setlist_song_clears_override(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", [songs[0]])
    row = _rows(session, s1.id)[0]
    row.duration_seconds = 100
    session.add(row)
    session.commit()

    response = client.put(f"/api/setlists/{s1.id}/songs/{row.id}", json={"duration_seconds": None, "tuning": None})
    data = response.json()
    assert data["duration_seconds"] is None
    assert data["effective_duration_seconds"] == 240
    assert data["tuning"] == "standard"

def test_update_setlist_song_wrong_setlist(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", [songs[0]])
    s2 = make_setlist(session, band, "S2")
    row_id = _rows(session, s1.id)[0].id
    response = client.put(f"/api/setlists/{s2.id}/songs/{row_id}", json={"bpm": 1})
    assert response.status_code == 404

# --- reorder ---

def test_reorder_setlist_songs(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs)
    r1, r2, r3 = [r.id for r in _rows(session, s1.id)]

    response = client.put(f"/api/setlists/{s1.id}/songs", json={"songs": [{"id": r3}, {"id": r1}, {"id": r2}]})
    assert response.status_code == 200
    assert [(row["id"], row["position"]) for row in response.json()] == [(r3, 1), (r1, 2), (r2, 3)]
    assert [r.id for r in _rows(session, s1.id)] == [r3, r1, r2]

def test_reorder_applies_overrides(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs[:2])
    r1, r2 = [r.id for r in _rows(session, s1.id)]

    response = client.put(f"/api/setlists/{s1.id}/songs", json={"songs": [{"id": r2}, {"id": r1, "bpm": 99}]})
    assert response.status_code == 200
    rows = _rows(session, s1.id)
    assert [r.id for r in rows] == [r2, r1]
    assert rows[1].bpm == 99
    assert rows[0].bpm is None

def test_reorder_requires_every_song(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs)
    r1, r2, r3 = [r.id for r in _rows(session, s1.id)]

    response = client.put(f"/api/setlists/{s1.id}/songs", json={"songs": [{"id": r2}, {"id": r1}]})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "VALIDATION"
    assert [r.id for r in _rows(session, s1.id)] == [r1, r2, r3]

# --- copy song ---

def test_copy_song_to_setlist(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs[:2])
    s2 = make_setlist(session, band, "S2", [songs[2]])
    row = _rows(session, s1.id)[0]
    row.bpm = 130
    session.add(row)
    session.commit()

    response = client.post(f"/api/setlists/{s1.id}/songs/{row.id}/copy", json={"to_setlist_id": s2.id})
    assert response.status_code == 200
    data = response.json()
    assert data["setlist_id"] == s2.id
    assert data["position"] == 2
    assert data["bpm"] == 130
    assert positions_of(session, s2.id) == [(songs[2].id, 1), (songs[0].id, 2)]
    # コピー元はそのまま
    assert len(_rows(session, s1.id)) == 2

def test_copy_song_duplicate(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", [songs[0]])
    s2 = make_setlist(session, band, "S2", [songs[0]])
    row_id = _rows(session, s1.id)[0].id

    response = client.post(f"/api/setlists/{s1.id}/songs/{row_id}/copy", json={"to_setlist_id": s2.id})
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "DUPLICATE_SONG"
    assert detail["message"] == '"Opener" is already in the destination setlist'
    assert positions_of(session, s2.id) == [(songs[0].id, 1)]

def test_copy_song_to_other_band(client: TestClient, session: Session, band, other_band, songs):
    s1 = make_setlist(session, band, "S1", [songs[0]])
    theirs = make_setlist(session, other_band, "Theirs")
    row_id = _rows(session, s1.id)[0].id

    response = client.post(f"/api/setlists/{s1.id}/songs/{row_id}/copy", json={"to_setlist_id": theirs.id})
    assert response.status_code == 403
    assert _rows(session, theirs.id) == []

def test_copy_song_errors(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", [songs[0]])
    s2 = make_setlist(session, band, "S2")
    row_id = _rows(session, s1.id)[0].id

    response = client.post(f"/api/setlists/{s1.id}/songs/{row_id}/copy", json={})
    assert response.status_code == 400

    response = client.post(f"/api/setlists/{s2.id}/songs/{row_id}/copy", json={"to_setlist_id": s1.id})
    assert response.status_code == 404
    assert response.json()["detail"]["message"] == "Song not found"

# --- bulk delete ---

def test_bulk_delete_songs(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs)
    r1, r2, r3 = [r.id for r in _rows(session, s1.id)]

    response = client.post(f"/api/setlists/{s1.id}/songs/bulk-delete", json={"song_ids": [r1, r3]})
    assert response.status_code == 200
    assert response.json() == {"deleted_count": 2, "message": "Successfully deleted 2 songs"}
    assert positions_of(session, s1.id) == [(songs[1].id, 1)]

def test_bulk_delete_dedupes_ids(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs[:2])
    r1, r2 = [r.id for r in _rows(session, s1.id)]

    response = client.post(f"/api/setlists/{s1.id}/songs/bulk-delete", json={"song_ids": [r1, r1]})
    assert response.json() == {"deleted_count": 1, "message": "Successfully deleted 1 song"}
    assert positions_of(session, s1.id) == [(songs[1].id, 1)]

def test_bulk_delete_requires_ids(client: TestClient, session: Session, band):
    s1 = make_setlist(session, band, "S1")
    response = client.post(f"/api/setlists/{s1.id}/songs/bulk-delete", json={"song_ids": []})
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Song IDs array is required"

def test_bulk_delete_rejects_foreign_rows(client: TestClient, session: Session, band, songs):
    s1 = make_setlist(session, band, "S1", songs[:2])
    s2 = make_setlist(session, band, "S2", [songs[2]])
    own = _rows(session, s1.id)[0].id
    foreign = _rows(session, s2.id)[0].id

    response = client.post(f"/api/setlists/{s1.id}/songs/bulk-delete", json={"song_ids": [own, foreign]})
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["message"] == "Some songs do not belong to this setlist"
    assert detail["details"] == {"invalid_ids": [foreign]}
    assert len(_rows(session, s1.id)) == 2
    assert len(_rows(session, s2.id)) == 1

def test_bulk_delete_unknown_setlist(client: TestClient, band):
    response = client.post("/api/setlists/missing/songs/bulk-delete", json={"song_ids": ["x"]})
    assert response.status_code == 404
