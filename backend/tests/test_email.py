"""
SMTP delivery tests.
"""

import smtplib

import pytest

from taskflow.core import config
from taskflow.services import email as email_service


class FakeSMTP:
    """Stands in for an SMTP connection and records its lifecycle."""

    instances = []

    def __init__(self, host, port, timeout=None):
        self.closed = False
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def starttls(self):
        pass

    def login(self, username, password):
        pass

    def send_message(self, msg):
        self.sent.append(msg)


class FailingLoginSMTP(FakeSMTP):

    def login(self, username, password):
        raise smtplib.SMTPAuthenticationError(535, b"Authentication failed")


@pytest.fixture
def smtp_configured(monkeypatch: pytest.MonkeyPatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(config, "SMTP_HOST", "smtp.acme.com")
    monkeypatch.setattr(config, "SMTP_USERNAME", "noreply@acme.com")
    monkeypatch.setattr(config, "SMTP_PASSWORD", "secret")
    monkeypatch.setattr(config, "SMTP_FROM_EMAIL", "noreply@acme.com")
    monkeypatch.setattr(config, "SMTP_USE_SSL", True)
    return monkeypatch


class TestSendEmail:

    def test_missing_configuration(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(config, "SMTP_HOST", None)
        assert email_service.send_email("bob@x.com", "Hi", "<p>Hi</p>") is False

    def test_sends_and_closes_connection(self, smtp_configured):
        smtp_configured.setattr(email_service.smtplib, "SMTP_SSL", FakeSMTP)

        assert email_service.send_invitation_email("bob@x.com", "tok", "Acme", "manager") is True

        connection = FakeSMTP.instances[0]
        assert connection.closed
        assert connection.sent[0]["To"] == "bob@x.com"
        assert connection.sent[0]["Subject"] == "Invitation to join Acme"

    def test_failed_login_still_closes_connection(self, smtp_configured):
        smtp_configured.setattr(email_service.smtplib, "SMTP_SSL", FailingLoginSMTP)

        assert email_service.send_email("bob@x.com", "Hi", "<p>Hi</p>") is False
        assert FakeSMTP.instances[0].closed

    def test_starttls_connection_is_closed(self, smtp_configured):
        smtp_configured.setattr(config, "SMTP_USE_SSL", False)
        smtp_configured.setattr(email_service.smtplib, "SMTP", FailingLoginSMTP)

        assert email_service.send_email("bob@x.com", "Hi", "<p>Hi</p>") is False
        assert FakeSMTP.instances[0].closed

    def test_invitation_url(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(config, "FRONTEND_BASE_URL", "https://app.acme.com/")
        assert email_service.build_invitation_url("abc") == "https://app.acme.com/register?token=abc"
