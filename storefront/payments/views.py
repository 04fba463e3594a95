import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends, Response
from fastapi.responses import HTMLResponse, JSONResponse

from storefront import config
from storefront.errors import CheckoutError, ValidationError
from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.templates import templates
from storefront.cart import service as cart_service
from storefront.payments import stripe_client
from storefront.payments import handoff as payments_handoff
from storefront.payments import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])
web_router = APIRouter(tags=["Pages"])

def error_response(e: CheckoutError) -> JSONResponse:
    """
    Corps d'erreur commun {error, success:false}.
    - detail (message Stripe/Supabase) seulement si CHECKOUT_VERBOSE
    """
    content: Dict[str, Any] = {"error": e.message, "success": False}
    if config.CHECKOUT_VERBOSE and e.detail:
        content["detail"] = e.detail
    return JSONResponse(content, status_code=e.status_code)

async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except Exception as e:
        raise ValidationError("JSON invalide", detail=str(e)) from e
    if not isinstance(body, dict):
        raise ValidationError("JSON invalide", detail="objet attendu")
    return body

# module storefront.payments.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def checkout_from_cart(request: Request, user: dict = Depends(require_user)):
    """
    Checkout à partir des ids produits du panier de l'utilisateur authentifié.
    - Entrée JSON: { "items": [ { "id": "<product_id>", "quantity": <int> }, ... ], "redirect": false }
    - Les prix viennent du catalogue (cart_service.cart_from_catalog)
    - redirect=true: réponse 303 directe vers la page Stripe
    - Réponse: {sessionId, url, orderId, degraded, success}
    """
    try:
        body = await _json_body(request)
        cart = cart_service.cart_from_catalog(body.get("items") or [])
        result = payments_service.initiate_checkout(
            cart,
            user,
            success_url=body.get("success_url"),
            cancel_url=body.get("cancel_url"),
        )
        if body.get("redirect"):
            return payments_handoff.handoff(result.url)
        return JSONResponse(result.to_payload())
    except CheckoutError as e:
        return error_response(e)

@router.options("/create-checkout", include_in_schema=False)
async def create_checkout_preflight():
    return Response(status_code=200)

@router.post("/create-checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout(request: Request, user: dict = Depends(require_user)):
    """
    Crée une session Checkout à partir de line_items déjà au format Stripe.
    - Entrée JSON: { "items": [ { "price_data": {...}, "quantity": <int> } ], "success_url"?, "cancel_url"? }
    - 400 items absents/mal formés, 401 non authentifié, 500/503 erreur Stripe
    """
    try:
        body = await _json_body(request)
        result = payments_service.create_checkout_session(
            body.get("items"),
            user,
            success_url=body.get("success_url"),
            cancel_url=body.get("cancel_url"),
        )
        return JSONResponse(result.to_payload())
    except CheckoutError as e:
        return error_response(e)

@router.post("/verify", dependencies=[Depends(optional_rate_limit(times=30, seconds=60))])
async def verify_payment(request: Request):
    """
    Vérifie une session Stripe (retour de la page de paiement).
    - Entrée JSON: { "sessionId": "cs_..." }
    - Réponse: {status, customerEmail, amount, orderId, degraded}
    - Pas d'authentification: l'id de session fait office de capacité, la réponse ne révèle que l'état Stripe
    """
    try:
        body = await _json_body(request)
        session_id = body.get("sessionId") or body.get("session_id")
        if not session_id:
            raise ValidationError("sessionId manquant")
        if not isinstance(session_id, str):
            raise ValidationError("sessionId invalide", detail="chaîne attendue")
        result = payments_service.verify_payment(session_id)
        return JSONResponse(result.to_payload())
    except CheckoutError as e:
        return error_response(e)

@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe (Checkout).
    - Signature: stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - completed/async_payment_succeeded: même vérificateur que la page de succès
    - expired: pending -> failed
    - Erreurs: 400 si signature/payload invalide, 500 si la vérification échoue (Stripe réessaiera)
    """
    try:
        event = await stripe_client.parse_event(request)
        outcome = payments_service.handle_webhook_event(event)
        logger.info("payments.webhook type=%s outcome=%s", event.get("type"), outcome)
        return JSONResponse(outcome)
    except CheckoutError as e:
        logger.warning("payments.webhook rejected: %s", e.message)
        return error_response(e)

@web_router.get("/success", response_class=HTMLResponse, name="success_page")
def success_page(request: Request):
    """
    Page de retour Stripe.
    - ?session_id=<id>: vérification serveur avant affichage ("verified" ou "pending")
    - sans session_id (ex: ?payment=completed): état "unverified", rien n'est confirmé
    - erreur de vérification: état "error"
    """
    session_id = (request.query_params.get("session_id") or "").strip()
    context: Dict[str, Any] = {
        "request": request,
        "store_name": config.STORE_NAME,
        "support_email": config.SUPPORT_EMAIL,
        "state": "unverified",
        "result": None,
        "clear_cart": False,
    }
    if session_id:
        try:
            result = payments_service.verify_payment(session_id)
            context["result"] = result
            context["state"] = "verified" if result.paid else "pending"
            context["clear_cart"] = result.paid
        except CheckoutError as e:
            logger.warning("success_page verification failed session_id=%s: %s", session_id, e.message)
            context["state"] = "error"
    return templates.TemplateResponse(request, "success.html", context)
