from typing import Optional
from sqlmodel import Session, select

from domain.models.band import BandMember
from infra.database.errors import storage_errors

class BandRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_membership(self, band_id: str, user_id: str) -> Optional[BandMember]:
        query = (
            select(BandMember)
            .where(BandMember.band_id == band_id)
            .where(BandMember.user_id == user_id)
        )
        with storage_errors(self.session):
            return self.session.exec(query).first()
