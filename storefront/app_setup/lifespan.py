"""
Lifespan FastAPI: ressources partagées au démarrage.
- Rate limiting: FastAPILimiter sur Redis (RATE_LIMIT_REDIS_URL), ou fakeredis
  avec USE_FAKE_REDIS_FOR_TESTS=1. DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1 le coupe.
- Fournisseurs: signale au démarrage les clés Stripe/Shippo/Supabase manquantes,
  sans bloquer (les appels concernés échoueront en 502).
"""
import os
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront.config import (
    RATE_LIMIT_REDIS_URL,
    SHIPPO_API_KEY,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    SUPABASE_SERVICE_KEY,
)

logger = logging.getLogger("storefront.startup")


def _warn_missing_provider_keys() -> None:
    missing = [
        name for name, value in (
            ("STRIPE_SECRET_KEY", STRIPE_SECRET_KEY),
            ("STRIPE_WEBHOOK_SECRET", STRIPE_WEBHOOK_SECRET),
            ("SHIPPO_API_KEY", SHIPPO_API_KEY),
            ("SUPABASE_SERVICE_KEY", SUPABASE_SERVICE_KEY),
        )
        if not value
    ]
    if missing:
        logger.warning("Configuration incomplète, variables absentes: %s", ", ".join(missing))


async def _init_rate_limiter(app: FastAPI) -> None:
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting désactivé (DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS)")
        return
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            from fakeredis.aioredis import FakeRedis  # dépendance de test
            r = FakeRedis(decode_responses=True)
        else:
            r = aioredis.from_url(RATE_LIMIT_REDIS_URL, encoding="utf-8", decode_responses=True)
        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting actif")
    except Exception as e:
        # Avec LOCAL_RATE_LIMIT_FALLBACK=1, optional_rate_limit bascule sur un compteur mémoire
        app.state.rate_limit_enabled = os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"
        logger.warning("Redis indisponible pour le rate limiting (%s), fallback local=%s", e, app.state.rate_limit_enabled)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _warn_missing_provider_keys()
    await _init_rate_limiter(app)
    yield
