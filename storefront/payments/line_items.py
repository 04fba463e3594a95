"""
Conversion panier -> line_items Stripe, en unités mineures (centimes).
Aucun appel réseau ici: logique pure testable.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List

from storefront.cart.models import Cart, money
from storefront.config import CHECKOUT_CURRENCY
from storefront.errors import EmptyCartError, InvalidLineItemError

def to_minor_units(amount: Any) -> int:
    """round(amount * 100) en half-up, sans passer par un float."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def from_minor_units(amount: Any) -> Decimal:
    return money(Decimal(int(amount or 0)) / 100)

# module storefront.payments.line_items
def to_gateway_line_items(cart: Cart, currency: str = CHECKOUT_CURRENCY) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe à partir du panier.
    - unit_amount en centimes (entier) pour éviter toute dérive flottante.
    - description et images ne sont transmises que si renseignées (Stripe refuse les chaînes vides).
    - Soulève EmptyCartError si le panier est vide.
    """
    if cart is None or cart.is_empty:
        raise EmptyCartError("Panier vide")
    line_items: List[Dict[str, Any]] = []
    for item in cart:
        product_data: Dict[str, Any] = {"name": item.title}
        if item.description:
            product_data["description"] = item.description
        if item.image_ref:
            product_data["images"] = [item.image_ref]
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": product_data,
                "unit_amount": to_minor_units(item.unit_price),
            },
            "quantity": item.quantity,
        })
    return line_items

def validate_gateway_items(items: Any) -> List[Dict[str, Any]]:
    """
    Valide des line_items déjà au format Stripe (contrat de /create-checkout).
    - items doit être une liste non vide
    - chaque ligne porte price_data.unit_amount (entier >= 0) et quantity (entier >= 1)
    """
    if not isinstance(items, list) or not items:
        raise EmptyCartError("Aucun article fourni")
    for idx, item in enumerate(items):
        price_data = (item or {}).get("price_data") if isinstance(item, dict) else None
        if not isinstance(price_data, dict):
            raise InvalidLineItemError("Format d'article invalide", detail=f"items[{idx}].price_data manquant")
        unit_amount = price_data.get("unit_amount")
        quantity = item.get("quantity")
        if isinstance(unit_amount, bool) or not isinstance(unit_amount, int) or unit_amount < 0:
            raise InvalidLineItemError("Format d'article invalide", detail=f"items[{idx}].price_data.unit_amount invalide")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidLineItemError("Format d'article invalide", detail=f"items[{idx}].quantity invalide")
        product_data = price_data.get("product_data")
        if not isinstance(product_data, dict) or not product_data.get("name"):
            raise InvalidLineItemError("Format d'article invalide", detail=f"items[{idx}].product_data.name manquant")
        price_data.setdefault("currency", CHECKOUT_CURRENCY)
    return items

def gateway_items_total(items: List[Dict[str, Any]]) -> Decimal:
    """Total en unité majeure: Σ unit_amount·quantity / 100."""
    cents = sum(int(i["price_data"]["unit_amount"]) * int(i["quantity"]) for i in items)
    return from_minor_units(cents)
