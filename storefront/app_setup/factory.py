"""
Factory d'application pour les entrypoints (ex: storefront.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .logging_config import configure_logging
from .middlewares import register_basic_middlewares, register_security_headers_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - la configuration des logs
      - middlewares de base et en-têtes de sécurité
      - gestionnaires d'exceptions (erreurs métier, 500)
      - tous les routers (shipping, cart, payment, orders, admin, health)
    """
    configure_logging()
    app = FastAPI(title="Storefront API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_headers_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
