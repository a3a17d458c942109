"""
Sniper notifications: drop warnings, acquisition results, execution errors.

Notifiers are fire-and-forget. send() never raises into the scheduler; email delivery runs
on a daemon thread via SMTP (Gmail or other). Set NOTIFY_EMAIL, SMTP_USER, SMTP_PASSWORD in
.env; without them notifications are only logged.
"""
import logging
import smtplib
import threading
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from dropsniper.config import Settings

logger = logging.getLogger(__name__)

DROP_WARNING = "drop_warning"
DROP_IMMINENT = "drop_imminent"
ACQUIRED = "acquired"
ACQUISITION_FAILED = "acquisition_failed"
EXECUTION_ERROR = "execution_error"


@dataclass(frozen=True)
class NotificationMessage:
    kind: str
    title: str
    body: str
    target_id: str | None = None


class Notifier(Protocol):
    def send(self, message: NotificationMessage) -> None:
        ...


# --- templates ---


def drop_warning(target, drop_at: datetime, seconds_to_drop: float) -> NotificationMessage:
    minutes = max(1, round(seconds_to_drop / 60))
    local = f"{target.drop_time} {target.drop_timezone or 'local'}"
    return NotificationMessage(
        kind=DROP_WARNING,
        title=f"{target.restaurant_name} drops in {minutes} min",
        body=f"Drop at {local} ({drop_at.isoformat()}) on {target.platform}. Party of {target.party_size} for {target.target_date}.",
        target_id=target.id,
    )


def drop_imminent(target) -> NotificationMessage:
    return NotificationMessage(
        kind=DROP_IMMINENT,
        title=f"{target.restaurant_name} drops in under a minute",
        body=f"Preparing to acquire on {target.platform} for {target.target_date} at {target.preferred_time}.",
        target_id=target.id,
    )


def acquired(target, result) -> NotificationMessage:
    return NotificationMessage(
        kind=ACQUIRED,
        title=f"Acquired {target.restaurant_name}",
        body=(
            f"Auto-acquired!\nConfirmation: {result.confirmation_code or 'Check platform'}\n"
            f"Time: {result.booked_time or target.preferred_time}\nAttempts: {result.attempts}"
        ),
        target_id=target.id,
    )


def acquisition_failed(target, result) -> NotificationMessage:
    return NotificationMessage(
        kind=ACQUISITION_FAILED,
        title=f"Failed to acquire {target.restaurant_name}",
        body=(
            f"Acquisition failed after {result.attempts} attempts.\nError: {result.error}\n"
            "Manual intervention may be needed."
        ),
        target_id=target.id,
    )


def execution_error(target, error: str) -> NotificationMessage:
    return NotificationMessage(
        kind=EXECUTION_ERROR,
        title=f"Execution error for {target.restaurant_name}",
        body=f"{error}\nTarget left watching for retry.",
        target_id=target.id,
    )


# --- notifiers ---


class LogNotifier:
    def send(self, message: NotificationMessage) -> None:
        logger.info("[%s] %s: %s", message.kind, message.title, message.body.replace("\n", " | "))


class EmailNotifier:
    """Log every message and email it on a background thread."""

    def __init__(
        self,
        *,
        to_email: str,
        smtp_host: str,
        smtp_port: int,
        smtp_user: str,
        smtp_password: str,
        from_email: str = "",
    ):
        self.to_email = to_email.strip()
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user.strip()
        self.smtp_password = smtp_password.strip()
        self.from_email = from_email.strip() or f"Drop Sniper <{self.smtp_user}>"
        self._log = LogNotifier()

    def send(self, message: NotificationMessage) -> None:
        self._log.send(message)
        threading.Thread(target=self.deliver, args=(message,), name="notify-email", daemon=True).start()

    def deliver(self, message: NotificationMessage) -> bool:
        """Send one email synchronously. Returns True if sent, False on failure."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"Drop Sniper: {message.title}"
        msg["From"] = self.from_email
        msg["To"] = self.to_email
        msg.attach(MIMEText(message.body, "plain"))
        msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{message.body}</pre>", "html"))
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.smtp_user, [self.to_email], msg.as_string())
            logger.info("Email sent to %s: %s", self.to_email, message.title)
            return True
        except Exception as e:
            logger.exception("Failed to send notification email: %s", e)
            return False


def build_notifier(settings: Settings) -> Notifier:
    to_email = (settings.notify_email or "").strip()
    if to_email and settings.smtp_user and settings.smtp_password:
        return EmailNotifier(
            to_email=to_email,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            from_email=settings.notify_from,
        )
    if to_email:
        logger.debug("SMTP_USER or SMTP_PASSWORD not set; notifications are logged only")
    return LogNotifier()
