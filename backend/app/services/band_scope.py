from typing import Optional
from sqlmodel import Session

from domain.models.setlist import Setlist
from domain.errors import ForbiddenError
from infra.repositories.band_repository import BandRepository
from infra.database.errors import storage_errors
from utils.logger import get_logger

logger = get_logger(__name__)

# require_resource_in_band が扱えるテーブル
RESOURCE_MODELS = {
    "setlists": Setlist,
}

class BandScope:
    """
    呼び出しユーザーがバンドのメンバーか、リソースがそのバンドに属するかを検証する。
    書き込み前に必ず通すこと。
    """

    def __init__(self, session: Session, user_id: str):
        self.session = session
        self.user_id = user_id
        self.band_repository = BandRepository(session)

    def require_band_membership(self, band_id: str, role: Optional[str] = None):
        membership = self.band_repository.get_membership(band_id, self.user_id)
        if not membership or not membership.is_active:
            logger.warning(f"Membership denied: user={self.user_id} band={band_id}")
            raise ForbiddenError("Forbidden: not a member of this band")
        if role and membership.role != role:
            logger.warning(f"Role denied: user={self.user_id} band={band_id} role={membership.role} required={role}")
            raise ForbiddenError(f"Forbidden: requires {role} role")
        return membership

    def require_resource_in_band(self, resource_table: str, resource_id: str, band_id: str):
        model = RESOURCE_MODELS.get(resource_table)
        if model is None:
            raise ValueError(f"Unsupported resource table: {resource_table}")

        with storage_errors(self.session):
            resource = self.session.get(model, resource_id)
        if not resource or resource.band_id != band_id:
            logger.warning(f"Resource outside band: {resource_table}/{resource_id} band={band_id}")
            raise ForbiddenError("Forbidden: resource does not belong to this band")
        return resource
