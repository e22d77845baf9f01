"""
Database configuration and table definitions.

This module provides:
- SQLAlchemy engine lifecycle
- Connection pooling with sane defaults (static pool for SQLite)
- SQLAlchemy Core table definitions for the engine's persistent store
"""
from typing import Optional
import logging
import os

from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    Float,
    String,
    DateTime,
    Boolean,
    JSON,
    Text,
    Index,
    UniqueConstraint,
    select,
    true,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func

from ecoquest.core.config import settings

logger = logging.getLogger("ecoquest.database")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Process-wide engine
_engine: Optional[Engine] = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def build_engine(url: str) -> Engine:
    """Create an engine for `url`; in-process SQLite shares one connection."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=False,
    )


def init_engine(database_url: Optional[str] = None) -> Engine:
    """
    Initialize the process-wide SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    _engine = build_engine(url)
    return _engine


def get_engine() -> Engine:
    """Get the current SQLAlchemy engine."""
    if _engine is None:
        init_engine()
    return _engine


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=engine or get_engine())


def drop_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    metadata.drop_all(bind=engine or get_engine())



def check_connection(engine: Optional[Engine] = None) -> bool:
    """Return True when a trivial query succeeds."""
    try:
        eng = engine or get_engine()
        with eng.connect() as conn:
            conn.execute(select(1))
        return True
    except Exception as e:
        logger.warning("Database connection check failed: %s", e)
        return False


# Users (participants). Points, streak and ambient metrics are engine-owned.
users = Table(
    'users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('name', Text, nullable=False, server_default=''),
    Column('neighborhood_id', String(100), nullable=True, index=True),
    Column('points', Integer, nullable=False, server_default='0'),
    Column('streak', Integer, nullable=False, server_default='0'),
    Column('last_activity_date', DateTime(timezone=True), nullable=True),
    Column('co2_saved', Float, nullable=False, server_default='0'),
    Column('waste_recycled', Float, nullable=False, server_default='0'),
    Column('km_green', Float, nullable=False, server_default='0'),
    Column('total_tasks_completed', Integer, nullable=False, server_default='0'),
    Column('level', String(100), nullable=False, server_default='Citizen'),
    Column('is_active', Boolean, nullable=False, server_default=true()),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Participation queries: (neighborhood_id, is_active, last_activity_date)
    Index('idx_users_neighborhood_activity', 'neighborhood_id', 'is_active', 'last_activity_date'),
)

# Per-category completion counters, incremented in SQL.
user_category_stats = Table(
    'user_category_stats',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('category', String(50), primary_key=True),
    Column('completed', Integer, nullable=False, server_default='0'),
)

# Badge grants are append-only: one row per (user, badge), never deleted.
user_badges = Table(
    'user_badges',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('badge_id', String(100), nullable=False),
    Column('awarded_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('user_id', 'badge_id', name='uq_user_badges_user_badge'),
)

neighborhoods = Table(
    'neighborhoods',
    metadata,
    Column('neighborhood_id', String(100), primary_key=True),
    Column('name', Text, nullable=False),
    Column('city', Text, nullable=False, server_default=''),
    Column('base_points', Integer, nullable=False, server_default='0'),
    Column('normalized_points', Float, nullable=False, server_default='0'),
    Column('ranking_position', Integer, nullable=True),
    Column('last_ranking_update', DateTime(timezone=True), nullable=True),
    Column('env_co2_saved', Float, nullable=False, server_default='0'),
    Column('env_waste_recycled', Float, nullable=False, server_default='0'),
    Column('env_km_green', Float, nullable=False, server_default='0'),
    Column('env_last_updated', DateTime(timezone=True), nullable=True),
)

tasks = Table(
    'tasks',
    metadata,
    Column('task_id', String(100), primary_key=True),
    Column('title', Text, nullable=False),
    Column('description', Text, nullable=False, server_default=''),
    Column('category', String(50), nullable=False),
    Column('base_points', Integer, nullable=False),
    Column('verification_method', String(30), nullable=False),
    Column('verification_criteria', JSON, nullable=False, default=dict),
    Column('impact_co2_saved', Float, nullable=False, server_default='0'),
    Column('impact_waste_recycled', Float, nullable=False, server_default='0'),
    Column('impact_distance', Float, nullable=False, server_default='0'),
    Column('frequency', String(20), nullable=False, server_default='on_demand'),
    Column('neighborhood_id', String(100), nullable=True),
    Column('is_active', Boolean, nullable=False, server_default=true()),
    Column('expires_at', DateTime(timezone=True), nullable=True),
    Column('rotated_at', DateTime(timezone=True), nullable=True),
    Column('rotated_from', String(100), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    # Eligibility lookups: (frequency, is_active, neighborhood_id)
    Index('idx_tasks_eligibility', 'frequency', 'is_active', 'neighborhood_id'),
    Index('idx_tasks_expiry', 'is_active', 'expires_at'),
)

quizzes = Table(
    'quizzes',
    metadata,
    Column('quiz_id', String(100), primary_key=True),
    Column('title', Text, nullable=False),
    Column('passing_score', Float, nullable=True),
    Column('questions', JSON, nullable=False, default=list),
)

# `slot_key` is "<user_id>:<frequency>" while the assignment is valid and NULL once
# expired; the unique constraint makes a second live assignment per slot impossible.
assignments = Table(
    'assignments',
    metadata,
    Column('assignment_id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False),
    Column('task_id', String(100), nullable=False),
    Column('frequency', String(20), nullable=False),
    Column('status', String(20), nullable=False),
    Column('slot_key', String(150), nullable=True),
    Column('assigned_at', DateTime(timezone=True), nullable=False),
    Column('expires_at', DateTime(timezone=True), nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('slot_key', name='uq_assignments_slot_key'),
    Index('idx_assignments_user_status', 'user_id', 'status'),
    Index('idx_assignments_status_expires', 'status', 'expires_at'),
)

submissions = Table(
    'submissions',
    metadata,
    Column('submission_id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False),
    Column('task_id', String(100), nullable=False),
    Column('neighborhood_id', String(100), nullable=True),
    Column('assignment_id', String(100), nullable=True),
    Column('status', String(20), nullable=False),
    Column('proof', JSON, nullable=False, default=dict),
    Column('points_awarded', Integer, nullable=False, server_default='0'),
    Column('rejection_reason', Text, nullable=True),
    Column('submitted_at', DateTime(timezone=True), nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    Column('reviewed_by', String(100), nullable=True),
    # Leaderboard windows: (neighborhood_id, status, completed_at)
    Index('idx_submissions_neighborhood_window', 'neighborhood_id', 'status', 'completed_at'),
    Index('idx_submissions_user_task_status', 'user_id', 'task_id', 'status'),
)

badges = Table(
    'badges',
    metadata,
    Column('badge_id', String(100), primary_key=True),
    Column('name', String(200), nullable=False, unique=True),
    Column('description', Text, nullable=False, server_default=''),
    Column('icon', String(50), nullable=False, server_default=''),
    Column('category', String(50), nullable=False, server_default=''),
    Column('rarity', String(30), nullable=False, server_default='Common'),
    Column('display_order', Integer, nullable=False, server_default='0'),
    Column('requirements', JSON, nullable=False, default=dict),
)

job_runs = Table(
    'job_runs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('job_name', String(100), nullable=False, index=True),
    Column('started_at', DateTime(timezone=True), nullable=False),
    Column('finished_at', DateTime(timezone=True), nullable=False),
    Column('status', String(20), nullable=False),
    Column('stats_json', Text, nullable=True),
)
