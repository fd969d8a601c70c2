"""
Middlewares transverses de l'API.
- register_basic_middlewares: CORS (front boutique), TrustedHost, en-têtes X-Forwarded-*.
- register_security_headers_middleware: en-têtes de sécurité; no-store sur les réponses
  qui portent panier, paiement ou commande.
L'authentification passe par l'en-tête Bearer, jamais par cookie: pas de CSRF.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from storefront.config import ALLOWED_HOSTS, CORS_ORIGINS

# Réponses contenant des données client ou de paiement
NO_STORE_PREFIXES = ("/cart", "/payment", "/orders", "/admin", "/shipping/orders")

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
}


def register_basic_middlewares(app: FastAPI) -> None:
    wildcard = "*" in CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Stripe-Signature"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=["*"] if wildcard else ALLOWED_HOSTS)
    # Derrière un proxy (Render, Nginx): IP client réelle pour le rate limiting
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])


def register_security_headers_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
        return response
