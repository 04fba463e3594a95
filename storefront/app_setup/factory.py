"""
Factory d'application utilisée par les entrypoints (storefront.asgi, python -m storefront).
"""
from fastapi import FastAPI

from storefront import __version__
from storefront.config import COOKIE_SECURE
from .lifespan import lifespan
from .middlewares import (
    register_basic_middlewares,
    register_security_middleware,
    register_no_cache_middleware,
    register_force_https_middleware,
)
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base, sécurité, no-cache (+ HTTPS forcé si COOKIE_SECURE)
      - gestionnaires d'exceptions
      - tous les routers (web, API, health)
    """
    app = FastAPI(title="Storefront", version=__version__, lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    if COOKIE_SECURE:
        register_force_https_middleware(app)
    return app
