import math
import re
from typing import Iterable, Optional, Union

from domain.constants import DURATION_PLACEHOLDERS
from domain.models.setlist import SetlistSongView

Number = Union[int, float]

_CLOCK_RE = re.compile(r"^(\d+)\s*:\s*(\d{1,2})(?:\s*:\s*(\d{1,2}))?$")
_MIN_SEC_RE = re.compile(r"^(?:(\d+)\s*m)?\s*(?:(\d+)\s*s)?$", re.IGNORECASE)
_DECIMAL_RE = re.compile(r"^\d+(?:\.\d+)?$")
_FIRST_INT_RE = re.compile(r"\d+")


def effective_duration(override: Optional[Number], catalog: Optional[Number]) -> Optional[Number]:
    """セットリスト側の上書き値 → カタログ値 の順で有効な曲長を返す。どちらも無ければ None。"""
    if override is not None:
        return override
    return catalog


def row_effective_duration(row: SetlistSongView) -> Optional[Number]:
    catalog = row.song.duration_seconds if row.song else None
    return effective_duration(row.duration_seconds, catalog)


def calculate_setlist_total(songs: Iterable[SetlistSongView]) -> int:
    """
    セットリストの合計秒数。
    カード表示と詳細表示は同じ行集合をこの関数に渡すこと (表示間の食い違い防止)。
    id の無い行は無視し、同じ id の行は一度だけ数える。
    """
    seen = set()
    total = 0
    for row in songs:
        if not row.id or row.id in seen:
            continue
        seen.add(row.id)
        total += row_effective_duration(row) or 0
    return int(total)


def format_duration_summary(total_seconds: Number) -> str:
    """'7m' / '6h 03m' 形式。分は四捨五入 (30秒で切り上げ)。0 は 'TBD'。"""
    if not total_seconds or total_seconds <= 0:
        return "TBD"

    total_minutes = math.floor(total_seconds / 60 + 0.5)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes:02d}m"
    return f"{total_minutes}m"


def format_seconds_human(seconds: Optional[Number]) -> str:
    """M:SS (1時間未満) / H:MM:SS。負数は 0 扱い、端数は切り捨て。"""
    total = max(0, math.floor(seconds or 0))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_song_duration(seconds: Optional[Number]) -> str:
    if seconds is None:
        return "TBD"
    return format_seconds_human(seconds)


def parse_duration_to_seconds(value: Union[str, Number, None]) -> int:
    """
    人が入力した曲長を秒に変換する。
    対応: 数値, "3:45", "1:02:03", "3m 10s", "45s", "180"。
    プレースホルダ ("—", "TBD" 等) は 0。それ以外は最初に見つかった整数。
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if value < 0:
            return 0
        return math.floor(value)

    text = str(value).strip()
    if text.lower() in DURATION_PLACEHOLDERS:
        return 0

    match = _CLOCK_RE.match(text)
    if match:
        first, second, third = match.groups()
        if third is not None:
            return int(first) * 3600 + int(second) * 60 + int(third)
        return int(first) * 60 + int(second)

    match = _MIN_SEC_RE.match(text)
    if match and (match.group(1) or match.group(2)):
        return int(match.group(1) or 0) * 60 + int(match.group(2) or 0)

    if _DECIMAL_RE.match(text):
        return math.floor(float(text))

    first_int = _FIRST_INT_RE.search(text)
    return int(first_int.group()) if first_int else 0
