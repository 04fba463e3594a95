"""
Sérialisation/désérialisation des métadonnées Stripe (user_id, user_email, order_id).
"""
from typing import Any, Dict, Optional, Tuple

# module storefront.payments.metadata
def make_metadata(user_id: str, user_email: str, order_id: Optional[str] = None) -> Dict[str, str]:
    """
    Métadonnées attachées à la session Checkout.
    Stripe n'accepte que des chaînes: les valeurs absentes sont omises.
    """
    meta = {"user_id": str(user_id or ""), "user_email": str(user_email or "")}
    if order_id:
        meta["order_id"] = str(order_id)
    return meta

def extract_metadata_from_session(session: Dict[str, Any]) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Extrait (user_id, user_email, order_id) depuis une session Stripe Checkout.
    - Tolérant: retourne des None si la session n'a pas de metadata.
    """
    meta = (session or {}).get("metadata") or {} if isinstance(session, dict) else {}
    return meta.get("user_id") or None, meta.get("user_email") or None, meta.get("order_id") or None

def session_from_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Retourne event.data.object (la session Checkout) ou {}."""
    if not isinstance(event, dict):
        return {}
    return ((event.get("data") or {}).get("object")) or {}
