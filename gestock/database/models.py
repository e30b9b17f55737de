"""Database models for GeStock."""
from sqlalchemy import Column, Integer, String, DateTime, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session
from datetime import datetime
import json
import os

Base = declarative_base()

USER_STATE_ACTIVE = 1
USER_STATE_INACTIVE = 2


class User(Base):
    """User model."""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(25), nullable=False)
    email = Column(String(254), unique=True, nullable=False, index=True)
    password_hash = Column(String(60), nullable=False)
    state_id = Column(Integer, nullable=False, default=USER_STATE_ACTIVE)
    role = Column(String(20), nullable=False, default='user')
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)

    @property
    def is_active(self) -> bool:
        return self.state_id == USER_STATE_ACTIVE

    def to_dict(self):
        """Convert user to dictionary."""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'active': self.is_active,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'lastLogin': self.last_login.isoformat() if self.last_login else None
        }


class AuditEvent(Base):
    """Login or password reset event."""
    __tablename__ = 'audit_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    event = Column(String(50), nullable=False, index=True)  # e.g. login_failed, password_reset_completed
    level = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    email = Column(String(254), nullable=True, index=True)
    ip_address = Column(String(45), nullable=True)
    details = Column(Text, nullable=True)  # JSON

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'event': self.event,
            'level': self.level,
            'message': self.message,
            'email': self.email,
            'ipAddress': self.ip_address,
            'details': json.loads(self.details) if self.details else None
        }


# Database connection setup
_engine = None
_SessionLocal = None
_database_url = None


def configure_database(database_url: str = None):
    """Point the engine at ``database_url`` and drop any existing engine."""
    global _engine, _SessionLocal, _database_url
    if _SessionLocal is not None:
        _SessionLocal.remove()
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
    _database_url = database_url


def get_database_url():
    """Get database URL from configuration or environment."""
    if _database_url:
        return _database_url
    if os.getenv('DB_URL'):
        return os.getenv('DB_URL')

    db_host = os.getenv('DB_HOST', 'localhost')
    db_port = os.getenv('DB_PORT', '3306')
    db_name = os.getenv('DB_NAME', 'gestock')
    db_user = os.getenv('DB_USER', 'gestock')
    db_password = os.getenv('DB_PASSWORD', 'gestock_password')

    return f"mysql+pymysql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}?charset=utf8mb4"


def get_engine():
    """Get or create database engine."""
    global _engine
    if _engine is None:
        db_url = get_database_url()
        # SQLite doesn't support connect_timeout; request threads share its connections
        if db_url.startswith('sqlite'):
            connect_args = {'check_same_thread': False}
        else:
            connect_args = {'connect_timeout': 10}

        _engine = create_engine(
            db_url,
            pool_pre_ping=True,
            pool_recycle=3600,
            echo=False,
            connect_args=connect_args
        )
    return _engine


def get_session_local():
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = scoped_session(sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine()
        ))
    return _SessionLocal
