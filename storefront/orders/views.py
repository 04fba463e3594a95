# module storefront.orders.views
"""Historique des commandes de l'utilisateur connecté (plus récentes d'abord)."""
from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends

from storefront.utils.security import require_user
from storefront.orders import repository as orders_repository
from storefront.orders.models import Order

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])

@router.get("")
def list_my_orders(user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    rows = orders_repository.list_user_orders(str(user.get("id")))
    orders = []
    for row in rows:
        try:
            orders.append(Order.from_row(row).to_public())
        except ValueError:
            logger.warning("orders.views ligne ignorée id=%s", row.get("id"))
    return {"orders": orders}
