"""
Accès aux données du catalogue (table 'products').
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module storefront.catalog.repository
def list_products() -> List[dict]:
    """
    Liste les produits du plus ancien au plus récent (ordre d'affichage de la vitrine).
    - Retourne [] en cas d’erreur.
    """
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select("*")
            .order("created_at", desc=False)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.list_products failed")
        return []

def get_product(product_id: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select("*")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("catalog.repository.get_product failed id=%s", product_id)
        return None

def fetch_products_by_ids(ids: List[str]) -> List[dict]:
    """
    Récupère les produits par leurs IDs.
    - Retourne [] si ids vide ou en cas d’erreur.
    """
    if not ids:
        return []
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select("*")
            .in_("id", [str(i) for i in ids])
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_products_by_ids failed ids=%s", ids)
        return []

def get_products_map(ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit} à partir d’une liste d’IDs."""
    products = fetch_products_by_ids(list(ids))
    return {str(p.get("id")): p for p in products}
