# storefront/services/mailer.py
from flask import current_app
from flask_mail import Message

from ..extensions import mail
from ..errors import UpstreamError


def send_email(to: str, subject: str, html: str):
    msg = Message(subject, recipients=[to], html=html)
    try:
        mail.send(msg)
    except OSError as e:
        # smtplib errors are OSErrors too
        current_app.logger.error("Sending %r to %s failed: %s", subject, to, e)
        raise UpstreamError("There was an error sending the email. Try again later")
    current_app.logger.info("Sent %r to %s", subject, to)


def reset_code_email(code: str, ttl_minutes: int) -> str:
    return (
        "<p>We received a request to reset the password on your account.</p>"
        f"<p>Your reset code is <strong>{code}</strong>. It expires in {ttl_minutes} minutes.</p>"
        "<p>If you did not ask for this, you can ignore this email.</p>"
    )


def verification_email(link: str) -> str:
    return (
        "<p>Thanks for signing up. Please confirm your email address:</p>"
        f'<p><a href="{link}">{link}</a></p>'
    )
