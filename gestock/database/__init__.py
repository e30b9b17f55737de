"""Database module for GeStock."""
from gestock.database.models import User, AuditEvent, configure_database, get_session_local
from gestock.database.connection import init_db

__all__ = ['User', 'AuditEvent', 'configure_database', 'init_db', 'get_session_local']
