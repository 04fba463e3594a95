"""
Cas d'usage 'payments': orchestre panier, commandes, Stripe et notifications.

Flux (séquentiel, chaque étape dépend de la précédente):
  1) initiate_checkout: panier -> line_items -> commande 'pending' -> session Stripe -> URL hébergée
  2) (redirection navigateur vers Stripe, retour via success_url?session_id=...)
  3) verify_payment: session Stripe -> transition pending->completed gardée -> email de confirmation

Les erreurs Stripe sont visibles par l'utilisateur; les erreurs Supabase et SMTP sont
journalisées et signalées via `degraded` sans bloquer la réponse.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from storefront import config
from storefront.cart.models import Cart
from storefront.errors import (
    CheckoutError,
    EmptyCartError,
    GatewayError,
    PersistenceError,
    UnauthenticatedError,
    ValidationError,
    VerificationError,
)
from storefront.notifications import service as notifications_service
from storefront.orders import repository as orders_repository
from . import line_items as gateway_items
from . import metadata as meta
from . import stripe_client

logger = logging.getLogger(__name__)

SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"

SESSION_COMPLETED_EVENTS = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)
SESSION_EXPIRED_EVENTS = (
    "checkout.session.expired",
    "checkout.session.async_payment_failed",
)


@dataclass
class CheckoutResult:
    url: str
    session_id: str
    order_id: Optional[str] = None
    degraded: bool = False
    warnings: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "url": self.url,
            "orderId": self.order_id,
            "degraded": self.degraded,
            "success": True,
        }


@dataclass
class VerificationResult:
    session_id: str
    status: str
    customer_email: Optional[str]
    amount: Decimal
    order_id: Optional[str] = None
    transitioned: bool = False
    notified: bool = False
    degraded: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def paid(self) -> bool:
        return self.status == "paid"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "customerEmail": self.customer_email,
            "amount": float(self.amount),
            "orderId": self.order_id,
            "degraded": self.degraded,
        }


def _log_error(action: str, e: CheckoutError, **context) -> None:
    # CHECKOUT_VERBOSE: trace complète + détail SDK, sinon une ligne
    ctx = " ".join(f"{k}={v}" for k, v in context.items())
    if config.CHECKOUT_VERBOSE:
        logger.exception("%s failed: %s (%s) %s", action, e.message, e.detail, ctx)
    else:
        logger.warning("%s failed: %s %s", action, e.message, ctx)

def require_identity(identity: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """L'identité doit porter un id, un email et un token bearer (émis par Supabase Auth)."""
    identity = identity or {}
    if not identity.get("token") or not identity.get("id"):
        raise UnauthenticatedError("Non authentifié")
    if not identity.get("email"):
        raise UnauthenticatedError("Email utilisateur manquant")
    return identity

def with_session_placeholder(url: str) -> str:
    """Ajoute session_id={CHECKOUT_SESSION_ID} si l'URL de succès ne le porte pas déjà."""
    if SESSION_PLACEHOLDER in url:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}session_id={SESSION_PLACEHOLDER}"

def default_return_urls(base_url: Optional[str] = None) -> Dict[str, str]:
    base = (base_url or config.BASE_URL).rstrip("/")
    return {
        "success_url": with_session_placeholder(f"{base}{config.CHECKOUT_SUCCESS_PATH}"),
        "cancel_url": f"{base}{config.CHECKOUT_CANCEL_PATH}",
    }

# module storefront.payments.service
def initiate_checkout(
    cart: Cart,
    identity: Dict[str, Any],
    *,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> CheckoutResult:
    """
    Point d'entrée canonique du checkout à partir d'un panier.
    - Panier vide: EmptyCartError, sans appel Stripe.
    - Identité sans token: UnauthenticatedError, sans appel Stripe.
    - total_amount = sous-total du panier (hors taxe, c'est le montant encaissé par Stripe).
    """
    if cart is None or cart.is_empty:
        raise EmptyCartError("Panier vide")
    require_identity(identity)
    items = gateway_items.to_gateway_line_items(cart)
    return create_checkout_session(
        items,
        identity,
        success_url=success_url,
        cancel_url=cancel_url,
        total_amount=cart.subtotal,
    )

def create_checkout_session(
    items: List[Dict[str, Any]],
    identity: Dict[str, Any],
    *,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    total_amount: Optional[Decimal] = None,
) -> CheckoutResult:
    """
    Crée la commande 'pending' puis la session Stripe pour des line_items au format Stripe.
    Étapes:
      1) valider identité et line_items (aucun appel réseau avant)
      2) insérer la commande 'pending' AVANT Stripe (échec non bloquant -> degraded)
      3) créer la session Stripe (erreurs visibles: InvalidLineItemError, AuthError, GatewayUnavailableError)
      4) associer stripe_session_id à la commande (échec non bloquant -> degraded)
    """
    identity = require_identity(identity)
    items = gateway_items.validate_gateway_items(items)
    total = total_amount if total_amount is not None else gateway_items.gateway_items_total(items)
    urls = default_return_urls()
    success_url = with_session_placeholder(success_url or urls["success_url"])
    cancel_url = cancel_url or urls["cancel_url"]

    user_id = str(identity["id"])
    email = identity["email"]
    warnings: List[str] = []
    order_id: Optional[str] = None

    try:
        order = orders_repository.insert_pending_order(
            user_id=user_id,
            customer_email=email,
            total_amount=total,
            user_token=identity.get("token"),
        )
        order_id = str(order.get("id")) if order.get("id") is not None else None
    except PersistenceError as e:
        _log_error("payments.initiate insert_pending_order", e, user_id=user_id)
        warnings.append("order_insert_failed")

    if config.CHECKOUT_VERBOSE:
        logger.info("payments.initiate user_id=%s order_id=%s total=%s items=%s", user_id, order_id, total, items)
    else:
        logger.info("payments.initiate user_id=%s order_id=%s total=%s items=%s", user_id, order_id, total, len(items))

    try:
        session = stripe_client.create_session(
            line_items=items,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=meta.make_metadata(user_id, email, order_id),
            customer_id=stripe_client.find_customer_id(email),
            customer_email=email,
            client_reference_id=order_id,
        )
    except CheckoutError as e:
        _log_error("payments.initiate create_session", e, user_id=user_id, order_id=order_id)
        _abandon_order(order_id)
        raise

    session_id = session.get("id") or ""
    url = session.get("url") or ""
    if not session_id or not url:
        _abandon_order(order_id)
        raise GatewayError("Session Stripe invalide", detail=f"session={session_id or '-'}")

    if order_id:
        try:
            orders_repository.attach_session_id(order_id, session_id)
        except PersistenceError as e:
            _log_error("payments.initiate attach_session_id", e, order_id=order_id, session_id=session_id)
            warnings.append("order_session_link_failed")
    else:
        # Dernière chance: insérer directement avec l'id de session pour pouvoir réconcilier
        try:
            order = orders_repository.insert_pending_order(
                user_id=user_id,
                customer_email=email,
                total_amount=total,
                stripe_session_id=session_id,
            )
            order_id = str(order.get("id")) if order.get("id") is not None else None
        except PersistenceError as e:
            _log_error("payments.initiate insert_pending_order(retry)", e, session_id=session_id)

    logger.info("payments.initiate session_id=%s order_id=%s degraded=%s", session_id, order_id, bool(warnings))
    return CheckoutResult(url=url, session_id=session_id, order_id=order_id, degraded=bool(warnings), warnings=warnings)

def _abandon_order(order_id: Optional[str]) -> None:
    """Aucune session Stripe n'existe pour cette commande: pending -> failed (best-effort)."""
    if not order_id:
        return
    try:
        orders_repository.mark_failed_if_pending(order_id=order_id)
    except PersistenceError as e:
        _log_error("payments.abandon_order", e, order_id=order_id)

def _payment_intent_id(session: Dict[str, Any]) -> Optional[str]:
    pi = session.get("payment_intent")
    if isinstance(pi, str):
        return pi or None
    if pi is not None and hasattr(pi, "get"):
        return pi.get("id")
    return None

def _customer_email(session: Dict[str, Any]) -> Optional[str]:
    # Priorité: email saisi sur Stripe, puis email pré-rempli, puis métadonnées de l'initiateur
    details = session.get("customer_details") or {}
    _, meta_email, _ = meta.extract_metadata_from_session(session)
    return (details.get("email") if hasattr(details, "get") else None) or session.get("customer_email") or meta_email

def verify_payment(session_id: str) -> VerificationResult:
    """
    Vérifie une session Stripe et réconcilie la commande.
    - Lecture Stripe (expand payment_intent) en échec: VerificationError.
    - payment_status == "paid": transition pending->completed gardée par le statut;
      seule la transition déclenche l'email (idempotent en cas d'appels répétés ou concurrents).
    - La réponse reflète toujours l'état Stripe, même si la mise à jour ou l'email échouent.
    """
    if session_id is not None and not isinstance(session_id, str):
        raise ValidationError("session_id invalide", detail=f"type={type(session_id).__name__}")
    session_id = (session_id or "").strip()
    if not session_id:
        raise ValidationError("session_id manquant")

    try:
        session = stripe_client.get_session(session_id, expand=["payment_intent"])
    except CheckoutError as e:
        _log_error("payments.verify get_session", e, session_id=session_id)
        raise VerificationError("Vérification du paiement impossible", detail=e.detail or e.message) from e

    amount_total = session.get("amount_total")
    result = VerificationResult(
        session_id=session_id,
        status=session.get("payment_status") or "unknown",
        customer_email=_customer_email(session),
        amount=gateway_items.from_minor_units(amount_total) if amount_total else Decimal("0.00"),
    )

    if result.paid:
        _complete_order(result, session)

    if result.order_id is None and not result.degraded:
        try:
            order = orders_repository.get_order_by_session(session_id)
            result.order_id = str(order["id"]) if order and order.get("id") is not None else None
        except PersistenceError as e:
            _log_error("payments.verify get_order_by_session", e, session_id=session_id)

    logger.info(
        "payments.verify session_id=%s status=%s transitioned=%s notified=%s degraded=%s",
        session_id, result.status, result.transitioned, result.notified, result.degraded,
    )
    return result

def _complete_order(result: VerificationResult, session: Dict[str, Any]) -> None:
    payment_intent_id = _payment_intent_id(session)
    try:
        order = orders_repository.complete_if_pending(
            result.session_id,
            payment_intent_id=payment_intent_id,
            customer_email=result.customer_email,
        )
        if not order:
            # Association session/commande perdue à l'initiation: repli sur metadata.order_id
            _, _, meta_order_id = meta.extract_metadata_from_session(session)
            meta_order_id = meta_order_id or session.get("client_reference_id")
            if meta_order_id:
                order = orders_repository.complete_order_by_id_if_pending(
                    str(meta_order_id),
                    result.session_id,
                    payment_intent_id=payment_intent_id,
                    customer_email=result.customer_email,
                )
    except PersistenceError as e:
        _log_error("payments.verify complete_if_pending", e, session_id=result.session_id)
        result.degraded = True
        result.warnings.append("order_update_failed")
        return

    if not order:
        # Déjà complétée ou aucune commande pour cette session: rien à notifier
        return

    result.transitioned = True
    result.order_id = str(order.get("id")) if order.get("id") is not None else None
    email = result.customer_email or order.get("customer_email")
    try:
        sent = notifications_service.notify(email, result.order_id, result.session_id)
    except Exception:
        logger.exception("payments.verify notify crashed session_id=%s", result.session_id)
        sent = notifications_service.NotificationResult(sent=False, error="notify crashed")
    result.notified = sent.sent
    if sent.failed:
        result.degraded = True
        result.warnings.append("notification_failed")

def handle_webhook_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Webhook Stripe: réutilise le même vérificateur que la page de succès.
    - checkout.session.completed / async_payment_succeeded -> verify_payment
    - checkout.session.expired / async_payment_failed -> pending -> failed
    - autres types: ignorés
    """
    event_type = (event or {}).get("type") or ""
    session = meta.session_from_event(event)
    session_id = session.get("id") or ""
    if not session_id:
        return {"status": "ignored"}

    if event_type in SESSION_COMPLETED_EVENTS:
        result = verify_payment(session_id)
        return {"status": "ok", "payment_status": result.status, "transitioned": result.transitioned}

    if event_type in SESSION_EXPIRED_EVENTS:
        try:
            failed = orders_repository.mark_failed_if_pending(session_id=session_id)
        except PersistenceError as e:
            _log_error("payments.webhook mark_failed_if_pending", e, session_id=session_id)
            return {"status": "ok", "transitioned": False, "degraded": True}
        return {"status": "ok", "transitioned": bool(failed)}

    return {"status": "ignored"}
