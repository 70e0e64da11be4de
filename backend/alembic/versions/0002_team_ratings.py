from alembic import op
import sqlalchemy as sa

revision = "0002_team_ratings"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "team_rating",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "team_id", sa.String(), sa.ForeignKey("team.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("game_id", sa.String(), sa.ForeignKey("game.id"), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False, server_default="1200"),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("team_id", "game_id", name="uq_team_rating_team_id_game_id"),
    )
    op.create_table(
        "rating_history",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("match.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "team_id", sa.String(), sa.ForeignKey("team.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("game_id", sa.String(), sa.ForeignKey("game.id"), nullable=True),
        sa.Column("old_rating", sa.Integer(), nullable=False),
        sa.Column("new_rating", sa.Integer(), nullable=False),
        sa.Column("change", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_rating_history_team_id", "rating_history", ["team_id"])


def downgrade():
    op.drop_index("ix_rating_history_team_id", table_name="rating_history")
    op.drop_table("rating_history")
    op.drop_table("team_rating")
