# /myhome/utils/email_util.py
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from urllib.parse import urlencode
from flask import current_app


def send_password_reset_email(recipient_email: str, name: str, token: str) -> bool:
    """
    Sends a password reset link.

    Args:
        recipient_email (str): The user's email address.
        name (str): The user's display name.
        token (str): The raw reset token.

    Returns:
        bool: True if the message was handed to the mail server.
    """
    config = current_app.config
    mail_server = config.get('MAIL_SERVER')
    mail_port = config.get('MAIL_PORT', 587)
    mail_use_tls = config.get('MAIL_USE_TLS', True)
    mail_username = config.get('MAIL_USERNAME')
    mail_password = config.get('MAIL_PASSWORD')

    if not all([mail_server, mail_port, mail_username, mail_password]):
        current_app.logger.error("Email server is not configured. Cannot send password reset email.")
        return False

    sender_email = mail_username
    reset_link = f"{config['FRONTEND_URL'].rstrip('/')}/reset-password?{urlencode({'token': token})}"
    ttl_minutes = int(config['PASSWORD_RESET_TOKEN_TTL'].total_seconds() // 60)

    message = MIMEMultipart("alternative")
    message["Subject"] = "Reset your MyHome password"
    message["From"] = sender_email
    message["To"] = recipient_email

    text = f"""
    Hello {name},

    We received a request to reset the password for your MyHome account.
    Use the link below within {ttl_minutes} minutes to choose a new password:

    {reset_link}

    If you did not ask for this, you can ignore this email.
    """

    html = f"""
    <html>
      <body>
        <h2>Password reset</h2>
        <p>Hello {name},</p>
        <p>We received a request to reset the password for your MyHome account.</p>
        <p><a href="{reset_link}">Choose a new password</a> (valid for {ttl_minutes} minutes).</p>
        <p>If you did not ask for this, you can ignore this email.</p>
      </body>
    </html>
    """

    message.attach(MIMEText(text, "plain"))
    message.attach(MIMEText(html, "html"))

    try:
        with smtplib.SMTP(mail_server, mail_port) as server:
            if mail_use_tls:
                server.starttls(context=ssl.create_default_context())
            server.login(mail_username, mail_password)
            server.sendmail(sender_email, recipient_email, message.as_string())
        current_app.logger.info(f"Sent password reset email to {recipient_email}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        current_app.logger.error(f"Failed to send email to {recipient_email}: {e}")
        return False
