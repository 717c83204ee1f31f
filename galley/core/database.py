"""
Engine, sessions and the table definitions every feature shares.

Postgres in production (pooled), SQLite for local runs and tests (a single
shared connection). TEST_DATABASE_URL, when set, wins over DATABASE_URL.
"""
import logging
import os
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, Float, JSON, Text, Index, ForeignKey, true
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func

from galley.core.config import settings

logger = logging.getLogger("galley")

metadata = MetaData()

POSTGRES_POOL: Dict[str, int] = {
    "pool_size": 10,
    "max_overflow": 20,
    "pool_timeout": 30,
    "pool_recycle": 3600,
}

_engine: Optional[Engine] = None
_sessions: Optional[sessionmaker] = None


def _engine_for(url: str) -> Engine:
    if url.startswith("sqlite"):
        # TestClient and the app run on different threads but must see the same in-memory db
        return create_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_engine(url, poolclass=QueuePool, **POSTGRES_POOL)


def get_engine() -> Engine:
    """Lazily build the process-wide engine."""
    global _engine, _sessions
    if _engine is None:
        url = os.getenv("TEST_DATABASE_URL") or settings.DATABASE_URL
        if not url:
            raise RuntimeError("No database configured; set DATABASE_URL")
        _engine = _engine_for(url)
        _sessions = sessionmaker(bind=_engine, autoflush=False)
    return _engine


@contextmanager
def get_db_session() -> Iterator[Session]:
    """One unit of work: commit when the block exits cleanly, roll back otherwise."""
    get_engine()
    session = _sessions()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    metadata.create_all(bind=get_engine())


def reset_database():
    """Drop and recreate every table. Tests only."""
    engine = get_engine()
    metadata.drop_all(bind=engine)
    metadata.create_all(bind=engine)


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except SQLAlchemyError as e:
        logger.error(f"[database] connection check failed: {e}")
        return False
    return True


# ============================================================================
# TABLE DEFINITIONS
# ============================================================================

# Subscription tier per user, written by the payment flow
subscribers = Table(
    'subscribers',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('email', String(255), nullable=True),
    Column('subscription_tier', String(50), nullable=True),
    Column('trial_end', DateTime(timezone=True), nullable=True),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Usage ledger: one row per user, one counter per metered feature
user_usage = Table(
    'user_usage',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('ai_requests', Integer, nullable=False, default=0, server_default='0'),
    Column('calendar_events', Integer, nullable=False, default=0, server_default='0'),
    Column('document_uploads', Integer, nullable=False, default=0, server_default='0'),
    Column('video_call_minutes', Integer, nullable=False, default=0, server_default='0'),
    Column('forms_created', Integer, nullable=False, default=0, server_default='0'),
    Column('team_members', Integer, nullable=False, default=0, server_default='0'),
    Column('period_start', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Idempotency keys for user-initiated actions
idempotency_keys = Table(
    'idempotency_keys',
    metadata,
    Column('key', String(255), primary_key=True),
    Column('scope', String(100), nullable=False, index=True),
    Column('user_id', String(100), nullable=True),
    Column('status', String(20), nullable=False),  # in_flight | completed
    Column('status_code', Integer, nullable=True),
    Column('response_json', JSON, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    Index('idx_idempotency_keys_scope_created', 'scope', 'created_at'),
)

orders = Table(
    'orders',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('organization_id', String(100), nullable=True, index=True),
    Column('order_number', String(50), nullable=False),
    Column('order_type', String(50), nullable=False, server_default='manual'),
    Column('status', String(50), nullable=False, server_default='pending'),
    Column('customer_name', String(255), nullable=True),
    Column('items', JSON, nullable=True),
    Column('total_amount', Float, nullable=False, server_default='0'),
    Column('notes', Text, nullable=True),
    Column('created_by', String(100), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_orders_org_created', 'organization_id', 'created_at'),
)

automation_rules = Table(
    'automation_rules',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('organization_id', String(100), nullable=True, index=True),
    Column('name', String(255), nullable=False),
    Column('description', Text, nullable=True),
    Column('trigger_type', String(50), nullable=False),
    Column('trigger_config', JSON, nullable=True),
    Column('action_config', JSON, nullable=False),
    Column('is_active', Boolean, nullable=False, default=True, server_default=true()),
    Column('execution_count', Integer, nullable=False, default=0, server_default='0'),
    Column('last_execution', DateTime(timezone=True), nullable=True),
    Column('created_by', String(100), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

automation_logs = Table(
    'automation_logs',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('automation_rule_id', String(36), ForeignKey('automation_rules.id'), nullable=False, index=True),
    Column('organization_id', String(100), nullable=True),
    Column('status', String(20), nullable=False),  # running | completed | failed
    Column('trigger_data', JSON, nullable=True),
    Column('result_data', JSON, nullable=True),
    Column('error_message', Text, nullable=True),
    Column('execution_time_ms', Integer, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
)

parsed_documents = Table(
    'parsed_documents',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('organization_id', String(100), nullable=False, index=True),
    Column('user_id', String(100), nullable=False),
    Column('file_name', String(255), nullable=True),
    Column('category', String(50), nullable=False),
    Column('confidence', Float, nullable=False),
    Column('extracted_data', JSON, nullable=True),
    Column('suggested_fields', JSON, nullable=True),
    Column('raw_content', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

dynamic_forms = Table(
    'dynamic_forms',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('organization_id', String(100), nullable=False, index=True),
    Column('created_by', String(100), nullable=False),
    Column('title', String(255), nullable=False),
    Column('description', Text, nullable=True),
    Column('category', String(50), nullable=True),
    Column('form_schema', JSON, nullable=False),
    Column('source_document_id', String(36), ForeignKey('parsed_documents.id'), nullable=True),
    Column('is_active', Boolean, nullable=False, default=True, server_default=true()),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

courses = Table(
    'courses',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('organization_id', String(100), nullable=True, index=True),
    Column('title', String(255), nullable=False),
    Column('description', Text, nullable=True),
    Column('category', String(100), nullable=True),
    Column('difficulty_level', String(50), nullable=True),
    Column('duration_hours', Float, nullable=True),
    Column('instructor_name', String(255), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

lessons = Table(
    'lessons',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('course_id', String(36), ForeignKey('courses.id'), nullable=False),
    Column('title', String(255), nullable=False),
    Column('description', Text, nullable=True),
    Column('content', JSON, nullable=False),
    Column('duration_minutes', Integer, nullable=False, server_default='45'),
    Column('order_index', Integer, nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_lessons_course_order', 'course_id', 'order_index'),
)
