"""
Announcement emails.

Every teacher with an email address gets an individual message. Sending is
best effort: a failed recipient is logged and the loop moves on.
"""

from typing import Optional

import httpx

from app_logger import get_logger

logger = get_logger("notifications")

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
ANNOUNCEMENT_SUBJECT = "New School Announcement"


class SendGridMailer:
    """Sends one plain-text message per call through the SendGrid v3 API."""

    def __init__(self, api_key: str, sender: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.sender = sender
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def _from_field(self) -> dict:
        # "Name <address>" or a bare address
        if "<" in self.sender and self.sender.endswith(">"):
            name, _, addr = self.sender.partition("<")
            return {"email": addr.rstrip(">").strip(), "name": name.strip()}
        return {"email": self.sender.strip()}

    def send(self, to: str, subject: str, text: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": self._from_field(),
            "subject": subject,
            "content": [{"type": "text/plain", "value": text}],
        }
        r = self._client.post(SENDGRID_URL, json=payload)
        r.raise_for_status()

    def close(self) -> None:
        self._client.close()


class LogOnlyMailer:
    """Used when no SendGrid key is configured."""

    def send(self, to: str, subject: str, text: str) -> None:
        logger.warning("Email disabled, not sending: To=%s, Subject=%s", to, subject)

    def close(self) -> None:
        pass


class NotificationDispatcher:
    def __init__(self, teachers, mailer, subject: str = ANNOUNCEMENT_SUBJECT):
        self.teachers = teachers
        self.mailer = mailer
        self.subject = subject

    def announce(self, text: str) -> int:
        """Email ``text`` to every teacher with an address; returns how many sends succeeded."""
        try:
            recipients = self.teachers.with_email()
        except Exception:
            logger.exception("Could not load teachers for announcement email")
            return 0

        if not recipients:
            logger.info("No teachers with email to notify")
            return 0

        logger.info("Sending announcement to %d teacher(s)", len(recipients))
        sent = 0
        for teacher in recipients:
            email = teacher.get("email")
            try:
                self.mailer.send(email, self.subject, text)
            except Exception as exc:
                logger.error("Failed to send announcement to %s: %s", email, exc)
                continue
            sent += 1
            logger.info("Announcement sent to %s", email)
        return sent
