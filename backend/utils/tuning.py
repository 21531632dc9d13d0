from typing import Dict, Optional

from domain.constants import TUNINGS, DEFAULT_TUNING

def get_tuning_info(tuning: Optional[str]) -> Dict[str, str]:
    """未知/未設定のチューニングは standard として扱う。"""
    name, notes = TUNINGS.get(tuning or DEFAULT_TUNING, TUNINGS[DEFAULT_TUNING])
    return {"name": name, "notes": notes}
