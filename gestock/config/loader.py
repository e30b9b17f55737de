"""Configuration loader for GeStock."""
import yaml
import os
from typing import Any, Dict, Optional


def _env_or(name: str, value: Any) -> Any:
    """Environment variable ``name`` if set, otherwise ``value``."""
    env_value = os.getenv(name)
    return env_value if env_value not in (None, '') else value


class Config:
    """Application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """Load configuration from YAML file."""
        if config_path is None:
            config_path = os.getenv("GESTOCK_CONFIG", "config.yaml")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        # Server settings
        server = raw_config.get('server', {})
        self.port = server.get('port', 3000)
        self.host = server.get('host', '0.0.0.0')
        self.jwt_secret = _env_or('JWT_SECRET', server.get('jwtSecret'))
        self.jwt_expiration_hours = server.get('jwtExpirationHours', 24)
        # Honour X-Forwarded-For when running behind a reverse proxy
        self.trust_proxy = server.get('trustProxy', False)

        cors = raw_config.get('cors', {})
        self.cors_origins = cors.get('origins', '*')

        # Password reset. Secret and frontend URL have no defaults on purpose:
        # a missing value must fail loudly, never sign with a placeholder.
        reset = raw_config.get('passwordReset', {})
        self.reset_secret = _env_or('JWT_RESET_SECRET', reset.get('secret'))
        self.frontend_url = _env_or('FRONTEND_URL', reset.get('frontendUrl'))
        self.reset_token_ttl_minutes = reset.get('tokenTtlMinutes', 15)
        self.reset_sweep_interval_minutes = reset.get('sweepIntervalMinutes', 30)

        # Mail
        mail = raw_config.get('mail', {})
        self.mail_enabled = mail.get('enabled', False)
        self.mail_host = _env_or('MAIL_HOST', mail.get('host'))
        self.mail_port = int(_env_or('MAIL_PORT', mail.get('port', 465)))
        self.mail_use_ssl = mail.get('useSsl', True)
        self.mail_username = _env_or('MAIL_USER', mail.get('username'))
        self.mail_password = _env_or('MAIL_PASSWORD', mail.get('password'))
        self.mail_from = _env_or('MAIL_FROM', mail.get('fromAddress'))

        # Database (falls back to DB_* environment variables)
        database = raw_config.get('database', {})
        self.database_url = database.get('url')

        # Logging
        logging = raw_config.get('logging', {})
        self.log_level = logging.get('level', 'INFO')

        # Validate
        if self.reset_token_ttl_minutes <= 0:
            raise ValueError("passwordReset.tokenTtlMinutes must be positive")
        if self.reset_sweep_interval_minutes <= 0:
            raise ValueError("passwordReset.sweepIntervalMinutes must be positive")
        if self.mail_enabled and not self.mail_host:
            raise ValueError("mail.host is required when mail is enabled")

    @property
    def reset_token_ttl_seconds(self) -> int:
        return self.reset_token_ttl_minutes * 60

    @property
    def reset_sweep_interval_seconds(self) -> int:
        return self.reset_sweep_interval_minutes * 60

    def missing_reset_settings(self) -> list:
        """Names of unset settings the password reset flow needs."""
        missing = []
        if not self.reset_secret:
            missing.append('passwordReset.secret')
        if not self.frontend_url:
            missing.append('passwordReset.frontendUrl')
        return missing

    def missing_login_settings(self) -> list:
        """Names of unset settings login and registration need."""
        return [] if self.jwt_secret else ['server.jwtSecret']

    def to_dict(self) -> Dict[str, Any]:
        """Configuration as a dict with secrets masked, for startup logging."""
        def mask(value):
            return '***' if value else None

        return {
            'server': {
                'port': self.port,
                'host': self.host,
                'jwtSecret': mask(self.jwt_secret),
                'trustProxy': self.trust_proxy
            },
            'passwordReset': {
                'secret': mask(self.reset_secret),
                'frontendUrl': self.frontend_url,
                'tokenTtlMinutes': self.reset_token_ttl_minutes,
                'sweepIntervalMinutes': self.reset_sweep_interval_minutes
            },
            'mail': {
                'enabled': self.mail_enabled,
                'host': self.mail_host,
                'port': self.mail_port,
                'username': self.mail_username,
                'password': mask(self.mail_password),
                'fromAddress': self.mail_from
            },
            'logging': {
                'level': self.log_level
            }
        }
