"""
Réconciliation des commandes restées 'pending' (navigateur fermé avant le retour Stripe, webhook perdu).

Pour chaque commande 'pending' plus ancienne que le TTL:
  - pas de stripe_session_id: recherche de la session Stripe par order_id;
    aucune session trouvée -> failed (la session n'a jamais été créée)
  - session payée: vérificateur standard (completed + email de confirmation)
  - session Stripe 'expired': failed
  - sinon (session encore ouverte): laissée en 'pending'
  - ligne sans id: ignorée (journalisée)

Usage:
    python -m storefront.orders.reconciliation
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import logging

from storefront import config
from storefront.errors import CheckoutError, PersistenceError
from storefront.orders import repository as orders_repository
from storefront.payments import service as payments_service
from storefront.payments import stripe_client

logger = logging.getLogger(__name__)

# Marge entre l'insertion de la commande et la création de la session Stripe
SESSION_LOOKUP_MARGIN = timedelta(minutes=1)


@dataclass
class ReconciliationReport:
    checked: int = 0
    completed: int = 0
    failed: int = 0
    left_pending: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def _fail(report: ReconciliationReport, *, order_id: Optional[str] = None, session_id: Optional[str] = None) -> None:
    row = orders_repository.mark_failed_if_pending(order_id=order_id, session_id=session_id)
    if row:
        report.failed += 1

def _created_after(order: Dict[str, Any]) -> Optional[int]:
    value = order.get("created_at")
    if not value:
        return None
    try:
        created = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return int((created - SESSION_LOOKUP_MARGIN).timestamp())

def _reconcile_one(order: Dict[str, Any], report: ReconciliationReport) -> None:
    order_id = str(order.get("id") or "")
    if not order_id:
        logger.warning("orders.reconcile skipped row without id: %s", order)
        report.skipped += 1
        return

    session_id = order.get("stripe_session_id")
    if session_id:
        session = stripe_client.get_session(session_id)
    else:
        # Association session/commande perdue: la session porte order_id (client_reference_id, metadata)
        session = stripe_client.find_session_for_order(order_id, created_gte=_created_after(order))
        if not session:
            _fail(report, order_id=order_id)
            return

    if session.get("payment_status") == "paid":
        result = payments_service.verify_payment(session.get("id") or session_id)
        if result.transitioned:
            report.completed += 1
        return
    if session.get("status") == "expired":
        if session_id:
            _fail(report, session_id=session_id)
        else:
            _fail(report, order_id=order_id)
        return
    report.left_pending += 1

# module storefront.orders.reconciliation
def reconcile_pending_orders(ttl_minutes: Optional[int] = None, now: Optional[datetime] = None) -> ReconciliationReport:
    """
    Parcourt les commandes 'pending' créées avant now - ttl.
    - Une erreur Stripe/Supabase sur une commande est journalisée et n'interrompt pas le lot.
    - La lecture initiale en échec (Supabase indisponible) lève PersistenceError.
    """
    ttl = config.PENDING_ORDER_TTL_MINUTES if ttl_minutes is None else ttl_minutes
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=ttl)
    report = ReconciliationReport()

    orders = orders_repository.fetch_stale_pending_orders(cutoff)
    logger.info("orders.reconcile started cutoff=%s found=%s", cutoff.isoformat(), len(orders))

    for order in orders:
        report.checked += 1
        try:
            _reconcile_one(order, report)
        except CheckoutError as e:
            logger.warning("orders.reconcile failed order_id=%s: %s (%s)", order.get("id"), e.message, e.detail)
            report.errors.append(str(order.get("id")))

    logger.info(
        "orders.reconcile done checked=%s completed=%s failed=%s left_pending=%s skipped=%s errors=%s",
        report.checked, report.completed, report.failed, report.left_pending, report.skipped, len(report.errors),
    )
    return report


def main() -> int:
    """Entrée CLI: python -m storefront.orders.reconciliation (ou storefront-reconcile)."""
    logging.basicConfig(level=logging.INFO)
    try:
        report = reconcile_pending_orders()
    except PersistenceError as e:
        logger.error("orders.reconcile aborted: %s (%s)", e.message, e.detail)
        return 1
    return 1 if report.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
