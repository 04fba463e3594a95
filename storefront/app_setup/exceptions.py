"""
Gestionnaires d'exceptions.
- HTTPException sous /api/: JSON {detail, error, success:false} (même forme que les erreurs du checkout)
- 401/403 sur une page HTML: redirection vers l'accueil avec le message (?error=...)
- CheckoutError non interceptée par une vue: traduite via son status_code
"""
import logging
import urllib.parse
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from storefront.errors import CheckoutError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        is_api = request.url.path.startswith("/api/")
        if exc.status_code in (401, 403):
            accept = (request.headers.get("accept") or "").lower()
            if "text/html" in accept and not is_api:
                detail = str(getattr(exc, "detail", "")) or (
                    "Veuillez vous connecter" if exc.status_code == 401 else "Accès interdit"
                )
                msg = urllib.parse.quote_plus(detail)
                return RedirectResponse(url=f"/?error={msg}", status_code=HTTP_303_SEE_OTHER)
        content = {"detail": exc.detail}
        if is_api:
            content.update({"error": exc.detail, "success": False})
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        logger.warning("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "success": False})
