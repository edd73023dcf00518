"""
Email service for password recovery.
Uses Flask-Mail for SMTP integration with UTF-8 support.
"""
import logging
from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """Mail is only sent when SMTP is configured and sending is not suppressed."""
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def send_temporary_password_email(to_email: str, temp_password: str, store_name: str) -> bool:
    """
    Send the temporary password generated by a reset request.
    
    Returns:
        True if sent (or mail disabled), False on SMTP failure
    """
    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Password reset email skipped for {to_email}")
            return True

        subject = f"Sua nova senha temporária - {store_name}"

        html_body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #1e293b;">Recuperação de Senha</h1>
            <p>Olá,</p>
            <p>Recebemos uma solicitação para redefinir sua senha. Use a senha temporária abaixo para acessar o sistema:</p>
            <div style="background-color: #f1f5f9; border-radius: 8px; padding: 20px; margin: 24px 0; text-align: center;">
                <code style="font-size: 24px; font-weight: bold; letter-spacing: 2px;">{temp_password}</code>
            </div>
            <p><strong>Importante:</strong> altere esta senha assim que fizer login.</p>
            <p style="color: #94a3b8; font-size: 14px;">
                Se você não solicitou a redefinição de senha, ignore este email.
            </p>
        </div>
        """

        text_body = f"""
Olá,

Sua senha temporária é: {temp_password}

Altere esta senha assim que fizer login.
Se você não solicitou a redefinição, ignore este email.

{store_name}
"""

        msg = Message(
            subject=subject,
            recipients=[to_email],
            body=text_body,
            html=html_body,
        )
        mail.send(msg)
        logger.info(f"[EMAIL] Password reset email sent to {to_email}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Error sending password reset email: {e}")
        return False
