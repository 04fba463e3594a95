"""Dispatcher de notifications: email de confirmation de commande.
Échec « soft »: les erreurs de transport sont rapportées (sent=False), jamais levées vers le checkout.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from storefront import config
from storefront.errors import NotificationError
from storefront.utils.templates import templates
from . import mailer

logger = logging.getLogger(__name__)

CONFIRMATION_SUBJECT = "Order Confirmation - {store}"


@dataclass
class NotificationResult:
    sent: bool
    skipped: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return not self.sent and not self.skipped


def render_confirmation(email: str, order_id: Optional[str], session_id: str) -> str:
    """Rend le gabarit HTML fixe de confirmation (Jinja2, auto-échappement)."""
    return templates.get_template("emails/order_confirmation.html").render(
        email=email,
        order_id=order_id,
        session_id=session_id,
        store_name=config.STORE_NAME,
        support_email=config.SUPPORT_EMAIL,
        shop_url=config.FRONTEND_URL,
    )

def notify(email: str, order_id: Optional[str], session_id: str) -> NotificationResult:
    """
    Envoie la confirmation de commande.
    - SMTP non configuré: envoi ignoré (skipped), pas une erreur.
    - Erreur de transport: journalisée, sent=False + message.
    """
    if not email or not session_id:
        return NotificationResult(sent=False, error="email ou session_id manquant")
    html = render_confirmation(email, order_id, session_id)
    if not mailer.smtp_configured():
        logger.info("notifications.notify skipped (SMTP non configuré) email=%s session_id=%s", email, session_id)
        return NotificationResult(sent=False, skipped=True)
    try:
        mailer.send_html_email(
            to=email,
            subject=CONFIRMATION_SUBJECT.format(store=config.STORE_NAME),
            html=html,
            text=f"Your order {order_id or ''} is confirmed. Session: {session_id}",
        )
    except NotificationError as e:
        logger.exception("notifications.notify failed email=%s session_id=%s", email, session_id)
        return NotificationResult(sent=False, error=e.detail or e.message)
    return NotificationResult(sent=True)

def to_payload(result: NotificationResult, email: str, order_id: Optional[str]) -> Dict[str, Any]:
    message = "Confirmation email sent successfully"
    if result.skipped:
        message = "Confirmation email skipped (SMTP not configured)"
    return {"success": True, "message": message, "email": email, "orderId": order_id, "sent": result.sent}
