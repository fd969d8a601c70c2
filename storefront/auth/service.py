"""
Identité: le jeton Bearer est validé par Supabase Auth, son sujet fait foi comme user_id.
Le rôle admin (gestion des commandes, étiquettes) est lu dans app_metadata, puis user_metadata.
"""
from typing import Any, Dict, Optional

from .repository import get_user_from_access_token


def determine_role(metadata: Optional[Dict[str, Any]]) -> str:
    return "admin" if str((metadata or {}).get("role", "")).lower() == "admin" else "user"


def get_user_from_token(access_token: str) -> Dict[str, Any]:
    account = get_user_from_access_token(access_token)
    metadata = account.get("user_metadata") or {}
    app_metadata = account.get("app_metadata") or {}
    role = determine_role(app_metadata) if app_metadata.get("role") else determine_role(metadata)
    return {
        "id": account.get("id"),
        "email": account.get("email"),
        "metadata": metadata,
        "role": role,
        "token": access_token,
    }
