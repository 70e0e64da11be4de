from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _created_at():
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade():
    op.create_table(
        "profile",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index(
        "uq_profile_username_lower",
        "profile",
        [sa.text("lower(username)")],
        unique=True,
    )
    op.create_table(
        "game",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("map_pool", _json(), nullable=True),
    )
    op.create_table(
        "team",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        _created_at(),
    )
    op.create_table(
        "team_member",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "team_id", sa.String(), sa.ForeignKey("team.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("profile_id", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="member"),
        sa.UniqueConstraint(
            "team_id", "profile_id", name="uq_team_member_team_id_profile_id"
        ),
    )
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("game_id", sa.String(), sa.ForeignKey("game.id"), nullable=True),
        sa.Column("scheduled_by", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("match_type", sa.String(), nullable=False, server_default="friendly"),
        sa.Column("match_format", sa.String(), nullable=False, server_default="bo1"),
        sa.Column("game_mode", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stream_url", sa.String(), nullable=True),
        sa.Column("match_notes", sa.Text(), nullable=True),
        sa.Column("setup_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_match_status_start_time", "match", ["status", "start_time"])
    op.create_table(
        "match_participant",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("match.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("team_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("result", sa.String(), nullable=True),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "match_id", "team_id", name="uq_match_participant_match_id_team_id"
        ),
    )
    op.create_table(
        "match_settings",
        sa.Column(
            "match_id",
            sa.String(),
            sa.ForeignKey("match.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("selected_maps", _json(), nullable=False),
        sa.Column("settings", _json(), nullable=False),
        sa.Column("rules", sa.Text(), nullable=True),
    )
    op.create_table(
        "match_invitation",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("match.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("team_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("invited_by", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("acceptance_deadline", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_match_invitation_team_id_status", "match_invitation", ["team_id", "status"]
    )
    op.create_table(
        "match_result",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("match.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("winner_team_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("loser_team_id", sa.String(), sa.ForeignKey("team.id"), nullable=False),
        sa.Column("winner_score", sa.Integer(), nullable=False),
        sa.Column("loser_score", sa.Integer(), nullable=False),
        sa.Column("reported_by", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("reported_by_team_id", sa.String(), sa.ForeignKey("team.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "dispute",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("match.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("reported_by", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("team_id", sa.String(), sa.ForeignKey("team.id"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "match_chat_message",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("match.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("profile_id", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index(
        "ix_match_chat_message_match_id_created_at",
        "match_chat_message",
        ["match_id", "created_at"],
    )
    op.create_table(
        "player_stats",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("profile_id", sa.String(), sa.ForeignKey("profile.id"), nullable=False),
        sa.Column("game_id", sa.String(), sa.ForeignKey("game.id"), nullable=True),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tournaments_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tournaments_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_earnings", sa.Float(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "profile_id", "game_id", name="uq_player_stats_profile_id_game_id"
        ),
    )


def downgrade():
    op.drop_table("player_stats")
    op.drop_index("ix_match_chat_message_match_id_created_at", table_name="match_chat_message")
    op.drop_table("match_chat_message")
    op.drop_table("dispute")
    op.drop_table("match_result")
    op.drop_index("ix_match_invitation_team_id_status", table_name="match_invitation")
    op.drop_table("match_invitation")
    op.drop_table("match_settings")
    op.drop_table("match_participant")
    op.drop_index("ix_match_status_start_time", table_name="match")
    op.drop_table("match")
    op.drop_table("team_member")
    op.drop_table("team")
    op.drop_table("game")
    op.drop_index("uq_profile_username_lower", table_name="profile")
    op.drop_table("profile")
