# module storefront.orders.models
"""Modèle de la table 'orders' (seule entité durable).
Statuts: pending (créée avant la redirection Stripe), completed (paiement confirmé), failed (session expirée/abandonnée).
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Order(BaseModel):
    id: str
    user_id: Optional[str] = None
    customer_email: Optional[str] = None
    total_amount: Decimal = Decimal("0")
    status: OrderStatus = OrderStatus.PENDING
    stripe_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        data = dict(row or {})
        data["id"] = str(data.get("id") or "")
        if data.get("total_amount") is None:
            data["total_amount"] = Decimal("0")
        return cls.model_validate(data)

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "totalAmount": float(self.total_amount),
            "customerEmail": self.customer_email,
            "sessionId": self.stripe_session_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
