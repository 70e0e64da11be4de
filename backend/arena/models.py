from sqlalchemy.orm import relationship
from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Float,
    Boolean,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from .db import Base


class Profile(Base):
    __tablename__ = "profile"
    id = Column(String, primary_key=True)
    username = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("uq_profile_username_lower", func.lower(username), unique=True),
    )


class Game(Base):
    __tablename__ = "game"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    # Overrides the per-mode default map table when set.
    map_pool = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)


class Team(Base):
    __tablename__ = "team"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    logo_url = Column(String, nullable=True)
    created_by = Column(String, ForeignKey("profile.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    members = relationship(
        "TeamMember",
        cascade="all, delete-orphan",
        back_populates="team",
    )


class TeamMember(Base):
    __tablename__ = "team_member"
    id = Column(String, primary_key=True)
    team_id = Column(String, ForeignKey("team.id", ondelete="CASCADE"), nullable=False)
    profile_id = Column(String, ForeignKey("profile.id"), nullable=False)
    role = Column(String, nullable=False, default="member")  # owner | captain | manager | member

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint(
            "team_id", "profile_id", name="uq_team_member_team_id_profile_id"
        ),
    )


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    game_id = Column(String, ForeignKey("game.id"), nullable=True)
    scheduled_by = Column(String, ForeignKey("profile.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="scheduled")
    match_type = Column(String, nullable=False, default="friendly")
    match_format = Column(String, nullable=False, default="bo1")
    game_mode = Column(String, nullable=True)
    location = Column(String, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)
    stream_url = Column(String, nullable=True)
    match_notes = Column(Text, nullable=True)
    setup_completed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_match_status_start_time", "status", "start_time"),
    )


class MatchParticipant(Base):
    __tablename__ = "match_participant"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String, ForeignKey("team.id"), nullable=False)
    result = Column(String, nullable=True)  # "win" | "loss"
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "match_id", "team_id", name="uq_match_participant_match_id_team_id"
        ),
    )


class MatchSettings(Base):
    __tablename__ = "match_settings"
    match_id = Column(String, ForeignKey("match.id", ondelete="CASCADE"), primary_key=True)
    selected_maps = Column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    settings = Column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )
    rules = Column(Text, nullable=True)


class MatchInvitation(Base):
    __tablename__ = "match_invitation"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String, ForeignKey("team.id"), nullable=False)
    invited_by = Column(String, ForeignKey("profile.id"), nullable=False)
    status = Column(String, nullable=False, default="pending")
    acceptance_deadline = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_match_invitation_team_id_status", "team_id", "status"),
    )


class MatchResult(Base):
    __tablename__ = "match_result"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    winner_team_id = Column(String, ForeignKey("team.id"), nullable=False)
    loser_team_id = Column(String, ForeignKey("team.id"), nullable=False)
    winner_score = Column(Integer, nullable=False)
    loser_score = Column(Integer, nullable=False)
    reported_by = Column(String, ForeignKey("profile.id"), nullable=False)
    reported_by_team_id = Column(String, ForeignKey("team.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Dispute(Base):
    __tablename__ = "dispute"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    reported_by = Column(String, ForeignKey("profile.id"), nullable=False)
    team_id = Column(String, ForeignKey("team.id"), nullable=True)
    reason = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending | resolved | rejected
    resolution_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class MatchChatMessage(Base):
    __tablename__ = "match_chat_message"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    # No FK: system entries are authored by a sentinel id with no profile row.
    profile_id = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_match_chat_message_match_id_created_at", "match_id", "created_at"),
    )


class PlayerStats(Base):
    __tablename__ = "player_stats"
    id = Column(String, primary_key=True)
    profile_id = Column(String, ForeignKey("profile.id"), nullable=False)
    game_id = Column(String, ForeignKey("game.id"), nullable=True)
    matches_played = Column(Integer, nullable=False, default=0)
    matches_won = Column(Integer, nullable=False, default=0)
    tournaments_played = Column(Integer, nullable=False, default=0)
    tournaments_won = Column(Integer, nullable=False, default=0)
    total_earnings = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint(
            "profile_id", "game_id", name="uq_player_stats_profile_id_game_id"
        ),
    )


class TeamRating(Base):
    """Current Elo rating of a team; ``game_id`` NULL holds the overall rating."""

    __tablename__ = "team_rating"
    id = Column(String, primary_key=True)
    team_id = Column(String, ForeignKey("team.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(String, ForeignKey("game.id"), nullable=True)
    rating = Column(Integer, nullable=False, default=1200)
    matches_played = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("team_id", "game_id", name="uq_team_rating_team_id_game_id"),
    )


class RatingHistory(Base):
    __tablename__ = "rating_history"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String, ForeignKey("team.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(String, ForeignKey("game.id"), nullable=True)
    old_rating = Column(Integer, nullable=False)
    new_rating = Column(Integer, nullable=False)
    change = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_rating_history_team_id", "team_id"),)
