"""
Clients Supabase de la boutique.
- anon: lectures publiques (catalogue) et appels sans session
- service-role: contourne la RLS; réservé au webhook Stripe et aux écritures système
- utilisateur: anon + jeton Bearer, la RLS s'applique (paniers, adresses, commandes)
"""
from typing import Optional

from supabase import Client, create_client

from storefront.config import SUPABASE_ANON, SUPABASE_SERVICE_KEY, SUPABASE_URL

_anon_client: Optional[Client] = None
_service_client: Optional[Client] = None


def _connect(key: str, role: str) -> Client:
    if not SUPABASE_URL or not key:
        raise RuntimeError(f"Supabase non configuré pour le rôle {role} (SUPABASE_URL / clé manquante)")
    return create_client(SUPABASE_URL, key)


def get_supabase() -> Client:
    global _anon_client
    if _anon_client is None:
        _anon_client = _connect(SUPABASE_ANON, "anon")
    return _anon_client


def get_service_supabase() -> Client:
    global _service_client
    if _service_client is None:
        _service_client = _connect(SUPABASE_SERVICE_KEY, "service")
    return _service_client


def get_user_supabase(user_token: str) -> Client:
    """Nouveau client par requête: le jeton ne doit pas fuiter dans le client anon partagé."""
    if not user_token:
        raise ValueError("user_token requis")
    client = _connect(SUPABASE_ANON, "utilisateur")
    client.postgrest.auth(user_token)
    return client
