"""
Database models for the local store.

Every synchronized entity carries an immutable ``external_id`` (the provider's
identifier) alongside the local ``id``. Reconciliation always upserts on
``external_id``; the local ``id`` never leaves this process.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Date, ForeignKey, Boolean, Float, Index
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


class GameStatus:
    """Game status values stored in ``games.status``."""
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINAL = "final"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"

    ALL = (SCHEDULED, LIVE, FINAL, POSTPONED, CANCELLED)


class Team(Base):
    """NBA team keyed by the team provider's id."""
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True)
    external_id = Column(String(100), unique=True, nullable=False, index=True)
    abbreviation = Column(String(5), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    full_name = Column(String(255), nullable=False)
    city = Column(String(100))
    conference = Column(String(10))
    division = Column(String(50))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    players = relationship("Player", back_populates="team")


class Game(Base):
    """Scheduled, live, or finished game keyed by the schedule provider's event id."""
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)
    external_id = Column(String(100), unique=True, nullable=False, index=True)
    game_date = Column(Date, nullable=False, index=True)
    start_time = Column(DateTime, nullable=True)
    home_team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    visitor_team_id = Column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    home_team_score = Column(Integer, nullable=True)
    visitor_team_score = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, index=True, default=GameStatus.SCHEDULED)
    period = Column(Integer, nullable=True)
    time_remaining = Column(String(20), nullable=True)
    postseason = Column(Boolean, nullable=False, default=False)
    season = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    home_team = relationship("Team", foreign_keys=[home_team_id])
    visitor_team = relationship("Team", foreign_keys=[visitor_team_id])
    player_stats = relationship("PlayerGameStats", back_populates="game", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_games_date_status', 'game_date', 'status'),
    )


class Player(Base):
    """Player keyed by the box-score provider's athlete id."""
    __tablename__ = "players"

    id = Column(String(36), primary_key=True)
    external_id = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    position = Column(String(10))
    jersey = Column(String(5))
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=True, index=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    team = relationship("Team", back_populates="players")
    game_stats = relationship("PlayerGameStats", back_populates="player", cascade="all, delete-orphan")


class PlayerGameStats(Base):
    """One player's box-score line for one game.

    ``external_id`` is ``"{game_external_id}:{player_external_id}"``.
    """
    __tablename__ = "player_game_stats"

    id = Column(String(36), primary_key=True)
    external_id = Column(String(200), unique=True, nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=True)
    minutes = Column(Float, nullable=True)
    points = Column(Integer, nullable=True)
    rebounds = Column(Integer, nullable=True)
    assists = Column(Integer, nullable=True)
    steals = Column(Integer, nullable=True)
    blocks = Column(Integer, nullable=True)
    turnovers = Column(Integer, nullable=True)
    did_not_play = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    player = relationship("Player", back_populates="game_stats")
    game = relationship("Game", back_populates="player_stats")
