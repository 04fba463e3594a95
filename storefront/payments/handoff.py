"""
Passage de main au navigateur vers la page de paiement hébergée par Stripe.
Seule vérification: l'URL doit être en https sur un hôte Stripe attendu.
"""
from urllib.parse import urlparse

from fastapi.responses import RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from storefront.config import STRIPE_CHECKOUT_HOSTS
from storefront.errors import ValidationError

def validate_gateway_url(url: str) -> str:
    parsed = urlparse(url or "")
    host = (parsed.hostname or "").lower()
    if parsed.scheme != "https" or host not in STRIPE_CHECKOUT_HOSTS:
        raise ValidationError("URL de paiement inattendue", detail=f"host={host or '-'}")
    return url

def handoff(url: str) -> RedirectResponse:
    """Redirige (303) vers la page Stripe; pas de retry."""
    return RedirectResponse(url=validate_gateway_url(url), status_code=HTTP_303_SEE_OTHER)
