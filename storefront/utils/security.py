"""
Dépendances d'authentification (en-tête Authorization: Bearer <jeton Supabase>).
- get_current_user: 401 sans jeton ou jeton refusé
- get_optional_user: None pour un appel anonyme (cotation, suivi de commande par PaymentIntent)
- require_admin: 403 hors rôle admin
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Session expirée, veuillez vous connecter"


def _bearer_token(request: Request) -> Optional[str]:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer":
        return None
    return token.strip() or None


def _resolve_user(token: str) -> Dict[str, Any]:
    from storefront.auth import service as auth_service

    try:
        user = auth_service.get_user_from_token(token)
    except Exception as e:
        logger.warning("security: jeton refusé par Supabase Auth (%s)", type(e).__name__)
        raise HTTPException(status_code=401, detail=SESSION_EXPIRED)
    if not user.get("id"):
        raise HTTPException(status_code=401, detail=SESSION_EXPIRED)
    return user


def get_current_user(request: Request) -> Dict[str, Any]:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    return _resolve_user(token)


def get_optional_user(request: Request) -> Optional[Dict[str, Any]]:
    token = _bearer_token(request)
    return _resolve_user(token) if token else None


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
