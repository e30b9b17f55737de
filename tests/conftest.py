"""Pytest configuration and fixtures."""
import pytest
import tempfile
import os
import shutil
import bcrypt
from dataclasses import dataclass, field
from typing import List, Optional
from gestock.app import create_app
from gestock.auth.token_registry import shutdown_token_registry
from gestock.database.connection import init_db
from gestock.database.models import USER_STATE_INACTIVE, configure_database
from gestock.database.user_service import UserService


ACTIVE_EMAIL = 'user@x.com'
ACTIVE_PASSWORD = 'OldPass1!'
INACTIVE_EMAIL = 'inactive@x.com'


def hash_password(password: str) -> str:
    # Low cost keeps the suite fast
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=4)).decode('utf-8')


@dataclass
class SentEmail:
    kind: str
    email: str
    name: str
    reset_url: Optional[str] = None


@dataclass
class RecordingMailer:
    """Mailer double that keeps what would have been sent."""
    sent: List[SentEmail] = field(default_factory=list)
    fail_reset: bool = False
    fail_changed: bool = False

    def send_password_reset_email(self, email, name, reset_url):
        if self.fail_reset:
            raise ConnectionError('SMTP unavailable')
        self.sent.append(SentEmail('reset', email, name, reset_url))

    def send_password_changed_email(self, email, name):
        if self.fail_changed:
            raise ConnectionError('SMTP unavailable')
        self.sent.append(SentEmail('changed', email, name))

    def of_kind(self, kind):
        return [m for m in self.sent if m.kind == kind]


def run_inline(func, *args):
    func(*args)


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    temp = tempfile.mkdtemp()
    yield temp
    shutil.rmtree(temp)


@pytest.fixture
def database_url(temp_dir):
    return f"sqlite:///{os.path.join(temp_dir, 'test.db')}"


@pytest.fixture
def sample_config(temp_dir, database_url):
    """Create a sample configuration file."""
    config_content = f"""
server:
  port: 3000
  host: "0.0.0.0"
  jwtSecret: "test-secret-key"
  jwtExpirationHours: 1

passwordReset:
  secret: "test-reset-secret"
  frontendUrl: "https://gestock.test/"
  tokenTtlMinutes: 15
  sweepIntervalMinutes: 30

mail:
  enabled: false

database:
  url: "{database_url}"

logging:
  level: "DEBUG"
"""
    config_path = os.path.join(temp_dir, 'config.yaml')
    with open(config_path, 'w') as f:
        f.write(config_content)
    return config_path


@pytest.fixture
def test_database(database_url):
    """Create a test database."""
    configure_database(database_url)
    init_db()
    yield database_url
    configure_database(None)


@pytest.fixture
def app(sample_config):
    """Create Flask app for testing."""
    app = create_app(sample_config)
    app.config['TESTING'] = True
    yield app
    shutdown_token_registry()
    configure_database(None)


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def reset_service(app):
    return app.config['PASSWORD_RESET_SERVICE']


@pytest.fixture
def outbox(reset_service):
    """Capture emails sent by the reset flow, dispatching synchronously."""
    mailer = RecordingMailer()
    reset_service.mailer = mailer
    reset_service.dispatch = run_inline
    return mailer


@pytest.fixture
def active_user(app):
    return UserService.create_user('Ana', ACTIVE_EMAIL, hash_password(ACTIVE_PASSWORD))


@pytest.fixture
def inactive_user(app):
    return UserService.create_user('Luis', INACTIVE_EMAIL, hash_password(ACTIVE_PASSWORD),
                                   state_id=USER_STATE_INACTIVE)
