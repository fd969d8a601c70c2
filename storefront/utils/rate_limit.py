"""
Limitation de débit des endpoints sensibles (création de paiement, cotation Shippo).
- Redis via fastapi-limiter quand le lifespan l'a initialisé
- LOCAL_RATE_LIMIT_FALLBACK=1: compteur en mémoire par processus (dev, tests)
- Redis absent sans fallback: aucune limite, jamais de 500
"""
import hashlib
import os
import time
from typing import Any, Dict, List

from fastapi import HTTPException, Request, Response

TOO_MANY = "Trop de requêtes, réessayez plus tard"


def _user_key_from_request(req: Request) -> str:
    # Un compteur par (jeton Bearer haché, sinon IP) et par chemin
    auth_header = req.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else ""
    if token:
        who = "user:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
    else:
        who = "ip:" + (req.client.host if req.client else "local")
    return f"{who}:{req.url.path}"


def _memory_hit(request: Request, times: int, seconds: int) -> None:
    store: Dict[str, List[float]] = getattr(request.app.state, "_rl_store", None) or {}
    key = _user_key_from_request(request)
    now = time.time()
    window = [t for t in store.get(key, []) if now - t < seconds]
    if len(window) >= times:
        retry_after = max(1, int(seconds - (now - window[0])))
        raise HTTPException(status_code=429, detail=TOO_MANY, headers={"Retry-After": str(retry_after)})
    window.append(now)
    store[key] = window
    request.app.state._rl_store = store


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _memory_hit(request, times, seconds)
            return
        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _user_key_from_request(req)

        try:
            await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception:
            # Redis injoignable: on laisse passer
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    from fastapi_limiter import FastAPILimiter

    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": None if enabled is None else bool(enabled),
        "ready": ready,
        "backend": "redis" if ready else None,
        "local_fallback": os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1",
    }
