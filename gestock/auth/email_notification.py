"""Transactional emails for the authentication flows."""
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from jinja2 import Environment, StrictUndefined

logger = logging.getLogger(__name__)

_templates = Environment(undefined=StrictUndefined, autoescape=False)

RESET_PASSWORD_TEMPLATE = _templates.from_string(
    "Hola {{ name }},\n"
    "\n"
    "Recibimos una solicitud para restablecer la contraseña de tu cuenta en GeStock.\n"
    "Usa el siguiente enlace para elegir una nueva contraseña:\n"
    "\n"
    "{{ reset_url }}\n"
    "\n"
    "El enlace caduca en {{ expiration_minutes }} minutos y solo funciona desde la red "
    "donde se hizo la solicitud.\n"
    "Si no solicitaste este cambio, ignora este correo.\n"
)

PASSWORD_CHANGED_TEMPLATE = _templates.from_string(
    "Hola {{ name }},\n"
    "\n"
    "La contraseña de tu cuenta en GeStock se cambió correctamente.\n"
    "Si no fuiste tú, contacta al administrador de inmediato.\n"
)


class EmailNotificationService:
    """Send reset and confirmation emails over SMTP.

    When mail is disabled the messages are logged instead of sent, which is
    how development environments get at reset links.
    """

    def __init__(self, host: Optional[str] = None, port: int = 465, use_ssl: bool = True,
                 username: Optional[str] = None, password: Optional[str] = None,
                 from_address: Optional[str] = None, enabled: bool = True,
                 expiration_minutes: int = 15, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.username = username
        self.password = password
        self.from_address = from_address or username
        self.enabled = enabled
        self.expiration_minutes = expiration_minutes
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'EmailNotificationService':
        return cls(
            host=config.mail_host,
            port=config.mail_port,
            use_ssl=config.mail_use_ssl,
            username=config.mail_username,
            password=config.mail_password,
            from_address=config.mail_from,
            enabled=config.mail_enabled,
            expiration_minutes=config.reset_token_ttl_minutes,
        )

    def _send(self, to: str, subject: str, body: str):
        if not self.enabled:
            logger.info(f"Mail disabled, not sending '{subject}' to {to}:\n{body}")
            return

        message = EmailMessage()
        message['From'] = self.from_address
        message['To'] = to
        message['Subject'] = subject
        message.set_content(body)

        smtp_class = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        with smtp_class(self.host, self.port, timeout=self.timeout) as smtp:
            if not self.use_ssl:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or '')
            smtp.send_message(message)

    def send_password_reset_email(self, email: str, name: str, reset_url: str):
        """Send the reset link. Raises on failure."""
        logger.info(f"Sending password reset email to {email}")
        body = RESET_PASSWORD_TEMPLATE.render(
            name=name,
            reset_url=reset_url,
            expiration_minutes=self.expiration_minutes,
        )
        try:
            self._send(email, 'Restablecimiento de contraseña - GeStock', body)
        except Exception as e:
            logger.error(f"Failed to send password reset email to {email}: {e}", exc_info=True)
            raise
        logger.info(f"Password reset email sent to {email}")

    def send_password_changed_email(self, email: str, name: str):
        """Send the change confirmation. Failures are logged, never raised."""
        logger.info(f"Sending password changed confirmation to {email}")
        try:
            body = PASSWORD_CHANGED_TEMPLATE.render(name=name)
            self._send(email, 'Confirmación de cambio de contraseña - GeStock', body)
        except Exception as e:
            logger.error(f"Failed to send password changed confirmation to {email}: {e}")
            return
        logger.info(f"Password changed confirmation sent to {email}")
