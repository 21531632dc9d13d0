from typing import Optional
from fastapi import Header, HTTPException

def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    認証済みユーザーIDをヘッダーから取得する。
    認証自体は前段 (ゲートウェイ) の責務で、ここでは存在確認のみ。
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail={"message": "Authentication required", "code": "UNAUTHENTICATED", "status": 401})
    return x_user_id
