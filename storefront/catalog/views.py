# module storefront.catalog.views
"""Endpoints publics du catalogue.
- Listing ordonné par date de création
- Détail d'un produit (404 si introuvable)
"""
from typing import Any, Dict
from fastapi import APIRouter, HTTPException

from storefront.catalog import repository as catalog_repository

router = APIRouter(prefix="/api/v1/products", tags=["Catalog API"])

def _normalize(p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(p.get("id") or ""),
        "title": p.get("title") or "",
        "price": float(p.get("price") or 0),
        "image_url": p.get("image_url") or "",
        "description": p.get("description") or "",
        "stock_quantity": int(p.get("stock_quantity") or 0),
    }

@router.get("")
def list_products() -> Dict[str, Any]:
    products = catalog_repository.list_products()
    return {"products": [_normalize(p) for p in products if p.get("id")]}

@router.get("/{product_id}")
def get_product(product_id: str) -> Dict[str, Any]:
    product = catalog_repository.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produit introuvable")
    return _normalize(product)
