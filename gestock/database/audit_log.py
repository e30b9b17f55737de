"""Persistent trail of login and password reset events."""
import json
import logging
from typing import Any, Dict, Optional

from gestock.database.models import AuditEvent, get_session_local

logger = logging.getLogger(__name__)

# Event names
LOGIN = 'login'
LOGIN_FAILED = 'login_failed'
REGISTERED = 'user_registered'
REGISTER_FAILED = 'user_register_failed'
RESET_REQUESTED = 'password_reset_requested'
RESET_REQUEST_FAILED = 'password_reset_request_failed'
RESET_COMPLETED = 'password_reset_completed'
RESET_REJECTED = 'password_reset_rejected'
SERVER_ERROR = 'server_error'


class AuditLog:
    """Record auth events in the ``audit_events`` table.

    ``record`` never raises: an unavailable store is reported through the
    module logger and the caller carries on.
    """

    @staticmethod
    def record(event: str, message: str, level: str = 'INFO', email: Optional[str] = None,
               ip_address: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        db = get_session_local()()
        try:
            db.add(AuditEvent(
                event=event,
                level=level.upper(),
                message=message,
                email=email,
                ip_address=ip_address,
                details=json.dumps(details) if details else None
            ))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Could not record audit event {event}: {e}")
        finally:
            db.close()

    @staticmethod
    def recent(limit: int = 100, event: Optional[str] = None, email: Optional[str] = None,
               level: Optional[str] = None):
        """Newest events first, optionally filtered."""
        db = get_session_local()()
        try:
            query = db.query(AuditEvent)
            if event:
                query = query.filter(AuditEvent.event == event)
            if email:
                query = query.filter(AuditEvent.email == email)
            if level:
                query = query.filter(AuditEvent.level == level.upper())
            return query.order_by(AuditEvent.timestamp.desc(), AuditEvent.id.desc()).limit(limit).all()
        except Exception as e:
            logger.error(f"Error reading audit events: {e}")
            return []
        finally:
            db.close()
