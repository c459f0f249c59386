"""
Email sending service using SMTP.
"""
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging
from taskflow.core import config

logger = logging.getLogger(__name__)


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    text_body: Optional[str] = None
) -> bool:
    """
    Send an email via SMTP.

    Delivery is best-effort: every failure is logged and reported as False,
    never raised to the caller.

    Args:
        to_email: Recipient email address
        subject: Email subject
        html_body: HTML email body
        text_body: Plain text email body (optional)

    Returns:
        True if email sent successfully, False otherwise
    """
    if not config.SMTP_HOST or not config.SMTP_USERNAME or not config.SMTP_PASSWORD:
        logger.error("SMTP configuration is missing. Cannot send email.")
        return False

    try:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{config.SMTP_FROM_NAME} <{config.SMTP_FROM_EMAIL}>"
        msg['To'] = to_email

        if text_body:
            msg.attach(MIMEText(text_body, 'plain', 'utf-8'))

        msg.attach(MIMEText(html_body, 'html', 'utf-8'))

        if config.SMTP_USE_SSL:
            connection = smtplib.SMTP_SSL(config.SMTP_HOST, config.SMTP_PORT, timeout=10)
        else:
            connection = smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10)

        # Closed on every exit path, including a failed login or send
        with connection as server:
            if not config.SMTP_USE_SSL:
                server.starttls()
            server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
            server.send_message(msg)

        logger.info(f"Email sent successfully to {to_email}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {str(e)}", exc_info=True)
        return False


def build_invitation_url(token: str) -> str:
    """Redemption URL embedding the invitation token."""
    return f"{config.FRONTEND_BASE_URL.rstrip('/')}/register?token={token}"


def send_invitation_email(
    email: str,
    token: str,
    organization_name: str,
    role: str,
    resent: bool = False
) -> bool:
    """
    Send an organization invitation email.

    Args:
        email: Invitee email address
        token: Invitation token embedded in the redemption URL
        organization_name: Name of the inviting organization
        role: Role granted on acceptance
        resent: Whether this is a re-dispatch of an existing invitation

    Returns:
        True if email sent successfully, False otherwise
    """
    invite_url = build_invitation_url(token)
    expiry_days = config.INVITATION_EXPIRY_DAYS

    subject = f"Invitation to join {organization_name}"
    if resent:
        subject += " (Resent)"

    text_body = f"""You've been invited!

You've been invited to join {organization_name} on TaskFlow as a {role}.

Open the link below to accept the invitation:

{invite_url}

This invitation will expire in {expiry_days} days."""

    html_body = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="color: #2563eb;">You've been invited!</h2>
        <p>You've been invited to join <strong>{organization_name}</strong> on TaskFlow as a {role}.</p>
        <p>Click the link below to accept the invitation:</p>
        <p><a href="{invite_url}">{invite_url}</a></p>
        <p style="font-size: 12px; color: #666;">This invitation will expire in {expiry_days} days.</p>
    </div>
</body>
</html>"""

    return send_email(
        to_email=email,
        subject=subject,
        html_body=html_body,
        text_body=text_body
    )
