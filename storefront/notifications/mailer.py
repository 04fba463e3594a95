"""
Transport SMTP des emails transactionnels (relais type Gmail/SendGrid en STARTTLS).
"""
import logging
import smtplib
from email.message import EmailMessage

from storefront import config
from storefront.errors import NotificationError

logger = logging.getLogger(__name__)

def smtp_configured() -> bool:
    return bool(config.SMTP_USER and config.SMTP_PASS)

# module storefront.notifications.mailer
def send_html_email(to: str, subject: str, html: str, text: str = "") -> None:
    """
    Envoie un email HTML (avec alternative texte) via SMTP + STARTTLS.
    - Soulève NotificationError sur toute erreur de transport.
    """
    msg = EmailMessage()
    msg["From"] = config.MAIL_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text or "Your order is confirmed.")
    msg.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT) as smtp:
            smtp.starttls()
            smtp.login(config.SMTP_USER, config.SMTP_PASS)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationError("Envoi de l'email impossible", detail=str(e)) from e
    logger.info("mailer.send_html_email sent to=%s subject=%s", to, subject)
