"""
Construction d'un panier côté serveur à partir des ids envoyés par le client.
Les prix et libellés viennent du catalogue: les prix envoyés par le navigateur ne sont pas crus.
"""
from typing import Any, Dict, List
import logging

from storefront.catalog.repository import get_products_map
from storefront.errors import EmptyCartError
from .models import Cart, LineItem, money

logger = logging.getLogger(__name__)

# module storefront.cart.service
def aggregate_quantities(items: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    Agrège un panier brut [{id, quantity}, ...] en {product_id: total_quantity}.
    - Ignore les lignes invalides (id vide, quantity <= 0 ou non numérique).
    - Soulève EmptyCartError si aucune ligne valide n’est présente.
    """
    quantities: Dict[str, int] = {}
    for it in items or []:
        product_id = str(it.get("id") or "").strip()
        try:
            qty = int(it.get("quantity") or 0)
        except (TypeError, ValueError):
            qty = 0
        if not product_id or qty <= 0:
            continue
        quantities[product_id] = quantities.get(product_id, 0) + qty
    if not quantities:
        raise EmptyCartError("Panier vide")
    return quantities

def cart_from_catalog(items: List[Dict[str, Any]]) -> Cart:
    """
    Hydrate un Cart depuis le catalogue.
    - Les produits introuvables sont ignorés (journalisés).
    - Soulève EmptyCartError si rien de valide ne subsiste.
    """
    quantities = aggregate_quantities(items)
    products = get_products_map(quantities.keys())
    cart = Cart()
    for product_id, qty in quantities.items():
        product = products.get(product_id)
        if not product:
            logger.warning("cart.service produit introuvable id=%s", product_id)
            continue
        cart.add(LineItem(
            id=product_id,
            title=product.get("title") or "Article",
            unit_price=money(product.get("price") or 0),
            quantity=qty,
            image_ref=product.get("image_url") or "",
            description=product.get("description") or None,
        ))
    if cart.is_empty:
        raise EmptyCartError("Aucun article valide")
    return cart
