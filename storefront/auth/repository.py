from typing import Any, Dict

from storefront.infra.supabase_client import get_supabase


def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """
    Interroge Supabase Auth pour un jeton d'accès.
    Retour: {id, email, user_metadata, app_metadata}; dict vide si le jeton ne résout aucun utilisateur.
    """
    res = get_supabase().auth.get_user(access_token)
    account = getattr(res, "user", None)
    if not account:
        return {}
    if isinstance(account, dict):
        return account
    return {
        "id": getattr(account, "id", None),
        "email": getattr(account, "email", None),
        "user_metadata": getattr(account, "user_metadata", None) or {},
        "app_metadata": getattr(account, "app_metadata", None) or {},
    }
