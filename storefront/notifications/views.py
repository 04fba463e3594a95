# module storefront.notifications.views
"""Endpoint de (ré)envoi de l'email de confirmation.
- Authentifié + rate-limité pour ne pas offrir un relais SMTP ouvert.
- 400 si email/sessionId manquant, 500 si le transport échoue.
"""
from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.notifications import service as notifications_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications API"])

@router.post("/confirmation-email", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
async def send_confirmation_email(request: Request, user: Dict[str, Any] = Depends(require_user)):
    try:
        body = await request.json()
    except Exception:
        return JSONResponse({"error": "JSON invalide", "success": False}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "JSON invalide", "success": False}, status_code=400)
    email = body.get("email")
    session_id = body.get("sessionId")
    order_id = body.get("orderId")
    if not email or not session_id:
        return JSONResponse({"error": "email ou sessionId manquant", "success": False}, status_code=400)
    if not isinstance(email, str) or not isinstance(session_id, str) or not isinstance(order_id, (str, type(None))):
        return JSONResponse({"error": "email, sessionId ou orderId invalide", "success": False}, status_code=400)

    result = notifications_service.notify(email, order_id, session_id)
    if result.failed:
        return JSONResponse({"error": result.error or "Envoi impossible", "success": False}, status_code=500)
    return JSONResponse(notifications_service.to_payload(result, email, order_id))
