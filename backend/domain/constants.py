import re

# Setlist types
SETLIST_TYPE_REGULAR = "regular"
SETLIST_TYPE_ALL_SONGS = "all_songs"
ALL_SONGS_NAME = "All Songs"
ALL_SONGS_NAME_VARIANTS = ("allsongs", "allsong")

# Band roles
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"

DEFAULT_TUNING = "standard"

# tuning -> (表示名, 弦の音)
TUNINGS = {
    "standard": ("Standard Tuning", "E A D G B E"),
    "drop_d": ("Drop D", "D A D G B E"),
    "half_step": ("Half Step Down", "Eb Ab Db Gb Bb Eb"),
    "full_step": ("Full Step Down", "D G C F A D"),
}

# Postgres互換のエラーコード (StorageError.code)
PG_UNIQUE_VIOLATION = "23505"
PG_FOREIGN_KEY_VIOLATION = "23503"
PG_NOT_NULL_VIOLATION = "23502"
PG_INSUFFICIENT_PRIVILEGE = "42501"

DUPLICATE_SONG_CONSTRAINT = "setlist_songs_setlist_id_song_id_key"
POSITION_CONSTRAINT = "setlist_songs_setlist_id_position_key"

# SQLite は制約名ではなくカラム一覧でエラーを報告する
DUPLICATE_SONG_MARKERS = (DUPLICATE_SONG_CONSTRAINT, "setlist_songs.song_id")
POSITION_MARKERS = (POSITION_CONSTRAINT, "setlist_songs.position")

PERMISSION_DENIED_REGEX = re.compile(r"permission denied|row-level security|insufficient privilege", re.IGNORECASE)

# Duration placeholders that mean "no duration"
DURATION_PLACEHOLDERS = ("", "—", "-", "tbd")
