"""initial schema: bands, songs, setlists, setlist_songs

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "bands",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "band_members",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("band_id", sa.String(), sa.ForeignKey("bands.id"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("band_id", "user_id", name="band_members_band_id_user_id_key"),
    )
    op.create_index("ix_band_members_band_id", "band_members", ["band_id"])
    op.create_index("ix_band_members_user_id", "band_members", ["user_id"])

    op.create_table(
        "songs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("artist", sa.String(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("bpm", sa.Integer(), nullable=True),
        sa.Column("tuning", sa.String(), nullable=True),
        sa.Column("is_live", sa.Boolean(), nullable=False),
        sa.Column("artwork_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_songs_title", "songs", ["title"])
    op.create_index("ix_songs_artist", "songs", ["artist"])

    op.create_table(
        "setlists",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("band_id", sa.String(), sa.ForeignKey("bands.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("setlist_type", sa.String(), nullable=False),
        sa.Column("total_duration", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_setlists_band_id", "setlists", ["band_id"])

    op.create_table(
        "setlist_songs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("setlist_id", sa.String(), sa.ForeignKey("setlists.id"), nullable=False),
        sa.Column("song_id", sa.String(), sa.ForeignKey("songs.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("bpm", sa.Integer(), nullable=True),
        sa.Column("tuning", sa.String(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("setlist_id", "song_id", name="setlist_songs_setlist_id_song_id_key"),
        sa.UniqueConstraint("setlist_id", "position", name="setlist_songs_setlist_id_position_key"),
    )
    op.create_index("ix_setlist_songs_setlist_id", "setlist_songs", ["setlist_id"])
    op.create_index("ix_setlist_songs_song_id", "setlist_songs", ["song_id"])


def downgrade() -> None:
    op.drop_table("setlist_songs")
    op.drop_table("setlists")
    op.drop_table("songs")
    op.drop_table("band_members")
    op.drop_table("bands")
