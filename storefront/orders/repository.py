"""
Accès aux données de la table 'orders'.

- Écritures serveur via service-role (bypass RLS), insertion initiale possible avec le token utilisateur.
- Les transitions de statut sont conditionnelles (WHERE status = 'pending'):
  une ligne retournée signifie que CET appel a effectué la transition.
- Les erreurs Supabase sont encapsulées en PersistenceError; l'appelant décide de les avaler.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.errors import PersistenceError
from .models import OrderStatus

logger = logging.getLogger(__name__)

TABLE = "orders"

def _persistence_error(message: str, e: Exception) -> PersistenceError:
    # APIError PostgREST: code Postgres (ex: 23505 doublon) + message
    if isinstance(e, APIError):
        return PersistenceError(message, detail=f"{e.code}: {e.message}")
    return PersistenceError(message, detail=str(e))

def _first(res) -> Optional[Dict[str, Any]]:
    rows = getattr(res, "data", None) or []
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None

# module storefront.orders.repository
def insert_pending_order(
    *,
    user_id: str,
    customer_email: str,
    total_amount: Decimal,
    user_token: Optional[str] = None,
    stripe_session_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Insère une commande 'pending'.
    - user_token présent: client utilisateur (RLS actif), sinon service-role.
    - total_amount sérialisé en chaîne "0.00" (numeric côté Postgres).
    """
    payload = {
        "user_id": user_id,
        "customer_email": customer_email,
        "total_amount": f"{Decimal(total_amount):.2f}",
        "status": OrderStatus.PENDING.value,
        "stripe_session_id": stripe_session_id,
        "stripe_payment_intent_id": None,
    }
    try:
        client = supabase_client.get_user_supabase(user_token) if user_token else supabase_client.get_service_supabase()
        res = client.table(TABLE).insert(payload).execute()
    except Exception as e:
        raise _persistence_error("Insertion de commande impossible", e) from e
    row = _first(res)
    if not row:
        raise PersistenceError("Insertion de commande sans retour", detail=f"user_id={user_id}")
    return row

def attach_session_id(order_id: str, session_id: str) -> Dict[str, Any]:
    """Associe la session Stripe à la commande (clé de réconciliation)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update({"stripe_session_id": session_id})
            .eq("id", order_id)
            .execute()
        )
    except Exception as e:
        raise _persistence_error("Association session/commande impossible", e) from e
    row = _first(res)
    if not row:
        raise PersistenceError("Commande introuvable pour association", detail=f"order_id={order_id}")
    return row

def complete_if_pending(
    session_id: str,
    *,
    payment_intent_id: Optional[str],
    customer_email: Optional[str],
) -> Optional[Dict[str, Any]]:
    """
    Transition pending -> completed gardée par le statut courant.
    - Retourne la ligne mise à jour si la transition a eu lieu, sinon None
      (session inconnue ou commande déjà complétée).
    """
    values: Dict[str, Any] = {
        "status": OrderStatus.COMPLETED.value,
        "stripe_payment_intent_id": payment_intent_id,
    }
    if customer_email:
        values["customer_email"] = customer_email
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update(values)
            .eq("stripe_session_id", session_id)
            .eq("status", OrderStatus.PENDING.value)
            .execute()
        )
    except Exception as e:
        raise _persistence_error("Mise à jour de commande impossible", e) from e
    return _first(res)

def complete_order_by_id_if_pending(
    order_id: str,
    session_id: str,
    *,
    payment_intent_id: Optional[str],
    customer_email: Optional[str],
) -> Optional[Dict[str, Any]]:
    """
    Repli quand la commande n'a jamais reçu son stripe_session_id (association en échec).
    - Cible id = order_id (métadonnées Stripe), status 'pending' et stripe_session_id NULL
    - Renseigne stripe_session_id dans la même mise à jour
    """
    values: Dict[str, Any] = {
        "status": OrderStatus.COMPLETED.value,
        "stripe_session_id": session_id,
        "stripe_payment_intent_id": payment_intent_id,
    }
    if customer_email:
        values["customer_email"] = customer_email
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update(values)
            .eq("id", order_id)
            .eq("status", OrderStatus.PENDING.value)
            .is_("stripe_session_id", "null")
            .execute()
        )
    except Exception as e:
        raise _persistence_error("Mise à jour de commande impossible", e) from e
    return _first(res)

def mark_failed_if_pending(*, order_id: Optional[str] = None, session_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Transition pending -> failed (session expirée ou jamais créée). Retourne la ligne si transition."""
    if not order_id and not session_id:
        raise ValueError("order_id ou session_id requis")
    try:
        query = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update({"status": OrderStatus.FAILED.value})
        )
        query = query.eq("id", order_id) if order_id else query.eq("stripe_session_id", session_id)
        res = query.eq("status", OrderStatus.PENDING.value).execute()
    except Exception as e:
        raise _persistence_error("Passage en échec impossible", e) from e
    return _first(res)

def get_order_by_session(session_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("stripe_session_id", session_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise _persistence_error("Lecture de commande impossible", e) from e
    return _first(res)

def fetch_stale_pending_orders(older_than: datetime, limit: int = 100) -> List[Dict[str, Any]]:
    """Commandes 'pending' créées avant older_than (plus anciennes d'abord)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("status", OrderStatus.PENDING.value)
            .lt("created_at", older_than.isoformat())
            .order("created_at", desc=False)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        raise _persistence_error("Lecture des commandes en attente impossible", e) from e
    return res.data or []

def list_user_orders(user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    """
    Commandes de l'utilisateur, plus récentes d'abord.
    - Retourne [] en cas d’erreur (lecture d'affichage).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_user_orders failed user_id=%s", user_id)
        return []
