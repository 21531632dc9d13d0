import pytest
from sqlmodel import Session
from models import BandMember
from app.services.band_scope import BandScope
from domain.constants import ROLE_ADMIN, ROLE_MEMBER
from domain.errors import ForbiddenError
from conftest import USER_ID, OTHER_USER_ID, make_setlist

def test_require_band_membership(session: Session, band):
    membership = BandScope(session, USER_ID).require_band_membership(band.id)
    assert membership.user_id == USER_ID

def test_require_band_membership_denied(session: Session, band, other_band):
    with pytest.raises(ForbiddenError):
        BandScope(session, USER_ID).require_band_membership(other_band.id)
    with pytest.raises(ForbiddenError):
        BandScope(session, OTHER_USER_ID).require_band_membership(band.id)

def test_inactive_member_is_denied(session: Session, band):
    member = BandMember(band_id=band.id, user_id="former", is_active=False)
    session.add(member)
    session.commit()
    with pytest.raises(ForbiddenError):
        BandScope(session, "former").require_band_membership(band.id)

def test_require_role(session: Session, band):
    session.add(BandMember(band_id=band.id, user_id="drummer", role=ROLE_MEMBER))
    session.commit()

    BandScope(session, USER_ID).require_band_membership(band.id, role=ROLE_ADMIN)
    with pytest.raises(ForbiddenError, match="requires admin role"):
        BandScope(session, "drummer").require_band_membership(band.id, role=ROLE_ADMIN)

def test_require_resource_in_band(session: Session, band, other_band):
    ours = make_setlist(session, band, "Ours")
    theirs = make_setlist(session, other_band, "Theirs")
    scope = BandScope(session, USER_ID)

    assert scope.require_resource_in_band("setlists", ours.id, band.id).id == ours.id
    with pytest.raises(ForbiddenError):
        scope.require_resource_in_band("setlists", theirs.id, band.id)
    with pytest.raises(ForbiddenError):
        scope.require_resource_in_band("setlists", "missing", band.id)

def test_require_resource_unknown_table(session: Session, band):
    with pytest.raises(ValueError):
        BandScope(session, USER_ID).require_resource_in_band("invoices", "x", band.id)
