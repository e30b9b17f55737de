"""User service for database operations."""
from sqlalchemy.exc import IntegrityError
from gestock.database.models import User, USER_STATE_ACTIVE, get_session_local
from datetime import datetime
import logging

# Get database session
def get_db():
    return get_session_local()()

logger = logging.getLogger(__name__)


class UserService:
    """Service for user database operations.

    Lookups return None when the user does not exist or the query fails;
    failures are logged here.
    """

    @staticmethod
    def find_by_email(email: str):
        """Get user by email."""
        db = get_db()
        try:
            return db.query(User).filter(User.email == email).first()
        except Exception as e:
            logger.error(f"Error getting user by email {email}: {e}")
            return None
        finally:
            db.close()

    @staticmethod
    def find_by_id(user_id: int):
        """Get user by ID."""
        db = get_db()
        try:
            return db.query(User).filter(User.id == user_id).first()
        except Exception as e:
            logger.error(f"Error getting user by ID {user_id}: {e}")
            return None
        finally:
            db.close()

    @staticmethod
    def create_user(name: str, email: str, password_hash: str, role: str = 'user',
                    state_id: int = USER_STATE_ACTIVE):
        """Create a new user."""
        db = get_db()
        try:
            user = User(
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
                state_id=state_id
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"Created user: {email} with role: {role}")
            return user
        except IntegrityError:
            db.rollback()
            logger.warning(f"User with email {email} already exists")
            return None
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating user {email}: {e}")
            return None
        finally:
            db.close()

    @staticmethod
    def update_password(user_id: int, password_hash: str) -> bool:
        """Store a new password hash. Returns False if nothing was updated."""
        db = get_db()
        try:
            updated = db.query(User).filter(User.id == user_id).update(
                {User.password_hash: password_hash}
            )
            db.commit()
            if not updated:
                logger.warning(f"No user with ID {user_id} to update password for")
                return False
            logger.info(f"Updated password for user ID {user_id}")
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating password for user ID {user_id}: {e}")
            return False
        finally:
            db.close()

    @staticmethod
    def update_last_login(user_id: int):
        """Update user's last login timestamp."""
        db = get_db()
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if user:
                user.last_login = datetime.utcnow()
                db.commit()
                return True
            return False
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating last login for user ID {user_id}: {e}")
            return False
        finally:
            db.close()
