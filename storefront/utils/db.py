"""
Accesseurs base de données injectés par FastAPI (Depends) et aide sur les erreurs PostgREST.

- get_scoped_client: client RLS au nom de l'utilisateur authentifié (anon sinon)
- get_service_client: client service-role, réservé aux écritures système et au webhook
Les fonctions métier reçoivent ces clients en paramètre; elles n'utilisent jamais de singleton.
"""
from typing import Any, Dict, Optional

from fastapi import Depends
from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront.utils.security import get_optional_user

UNIQUE_VIOLATION = "23505"


def get_scoped_client(user: Optional[Dict[str, Any]] = Depends(get_optional_user)):
    token = (user or {}).get("token")
    if token:
        return supabase_client.get_user_supabase(token)
    return supabase_client.get_supabase()


def get_service_client():
    return supabase_client.get_service_supabase()


def is_unique_violation(e: APIError) -> bool:
    """Vrai si l'erreur PostgREST correspond à une violation d'unicité (23505)."""
    code = getattr(e, "code", None)
    if not code and e.args and isinstance(e.args[0], dict):
        code = e.args[0].get("code")
    return str(code or "") == UNIQUE_VIOLATION
