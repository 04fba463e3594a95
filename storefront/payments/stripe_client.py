"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Traduit les exceptions du SDK en erreurs métier (storefront.errors).
"""
import logging
from typing import Any, Dict, List, Optional

import stripe
from fastapi import Request

from storefront.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from storefront.errors import (
    AuthError,
    GatewayError,
    GatewayUnavailableError,
    InvalidLineItemError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Pays proposés à la collecte d'adresse de livraison
SHIPPING_COUNTRIES = ["US", "CA", "GB", "AU", "DE", "FR", "IN"]

# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - Sans clé, le SDK lèvera AuthenticationError au premier appel (traduit en AuthError).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject: to_dict() selon la version du SDK; les tests fournissent des dicts
    if isinstance(obj, dict) and not hasattr(obj, "to_dict"):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)

def _translate(e: Exception, action: str) -> Exception:
    """Convertit une exception Stripe en erreur métier (message utilisateur + détail SDK)."""
    detail = getattr(e, "user_message", None) or str(e)
    if isinstance(e, stripe.InvalidRequestError):
        return InvalidLineItemError("Requête refusée par Stripe", detail=detail)
    if isinstance(e, (stripe.AuthenticationError, stripe.PermissionError)):
        return AuthError("Identifiants Stripe invalides", detail=detail)
    if isinstance(e, (stripe.APIConnectionError, stripe.RateLimitError)):
        return GatewayUnavailableError("Service de paiement indisponible, réessayez", detail=detail)
    return GatewayError(f"Erreur Stripe ({action})", detail=detail)

def find_customer_id(email: str) -> Optional[str]:
    """
    Réutilise un client Stripe existant pour cet email.
    - Best-effort: toute erreur est journalisée et ignorée (retourne None).
    """
    if not email:
        return None
    require_stripe()
    try:
        customers = stripe.Customer.list(email=email, limit=1)
        data = _as_dict(customers).get("data") or []
        if data:
            return _as_dict(data[0]).get("id")
    except Exception:
        logger.warning("stripe_client.find_customer_id failed email=%s", email, exc_info=True)
    return None

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    customer_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    client_reference_id: Optional[str] = None,
    mode: str = "payment",
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout hébergée.
    - customer (si connu) sinon customer_email pour préremplir la page Stripe
    - payment_intent_data.metadata.user_id pour relier le paiement à l'utilisateur
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://checkout.stripe.com/..."})
    """
    require_stripe()
    params: Dict[str, Any] = {
        "line_items": line_items,
        "mode": mode,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "payment_intent_data": {"metadata": {"user_id": metadata.get("user_id", "")}},
        "allow_promotion_codes": True,
        "billing_address_collection": "required",
        "shipping_address_collection": {"allowed_countries": SHIPPING_COUNTRIES},
    }
    if customer_id:
        params["customer"] = customer_id
    elif customer_email:
        params["customer_email"] = customer_email
    if client_reference_id:
        params["client_reference_id"] = client_reference_id
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        raise _translate(e, "create_session") from e
    return _as_dict(session)

def get_session(session_id: str, expand: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "status", "payment_status", "amount_total", "customer_details".
    """
    if not session_id:
        raise ValidationError("session_id manquant")
    require_stripe()
    try:
        if expand:
            session = stripe.checkout.Session.retrieve(session_id, expand=expand)
        else:
            session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        raise _translate(e, "get_session") from e
    return _as_dict(session)

def find_session_for_order(order_id: str, created_gte: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Retrouve la session Checkout d'une commande dont le stripe_session_id n'a pas été enregistré.
    - Correspondance sur client_reference_id ou metadata.order_id
    - created_gte (timestamp Unix) restreint la recherche aux sessions récentes
    - Aucune session: None (la session n'a jamais été créée)
    """
    if not order_id:
        raise ValidationError("order_id manquant")
    require_stripe()
    params: Dict[str, Any] = {"limit": 100}
    if created_gte is not None:
        params["created"] = {"gte": int(created_gte)}
    try:
        sessions = stripe.checkout.Session.list(**params)
    except stripe.StripeError as e:
        raise _translate(e, "list_sessions") from e
    for raw in _as_dict(sessions).get("data") or []:
        session = _as_dict(raw)
        metadata = session.get("metadata") or {}
        if session.get("client_reference_id") == order_id or metadata.get("order_id") == order_id:
            return session
    return None

async def parse_event(request: Request) -> Dict[str, Any]:
    """
    Parse et valide un événement Stripe signé (webhook).
    - Lit le body brut + en-tête Stripe-Signature
    - Valide la signature via Webhook.construct_event (STRIPE_WEBHOOK_SECRET)
    - Signature invalide: ValidationError
    """
    require_stripe()
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature") or ""
    if not STRIPE_WEBHOOK_SECRET:
        raise ValidationError("Webhook non configuré", detail="STRIPE_WEBHOOK_SECRET manquant")
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise ValidationError("Webhook Stripe invalide", detail=str(e)) from e
    return _as_dict(event)
