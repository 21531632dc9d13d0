from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from domain.constants import ROLE_MEMBER

def new_id() -> str:
    return str(uuid.uuid4())

class Band(SQLModel, table=True):
    __tablename__ = "bands"
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    created_at: datetime = Field(default_factory=datetime.now)

class BandMember(SQLModel, table=True):
    __tablename__ = "band_members"
    __table_args__ = (UniqueConstraint("band_id", "user_id", name="band_members_band_id_user_id_key"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    band_id: str = Field(foreign_key="bands.id", index=True)
    user_id: str = Field(index=True)
    role: str = Field(default=ROLE_MEMBER)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now)
